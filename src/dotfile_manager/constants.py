import os
from pathlib import Path

"""Global constants and path definitions for Dotfile Manager.

This module defines the filesystem layout (adhering to XDG standards where
applicable), application identifiers, the default tracked dotfiles and the
git vocabulary constants shared across the application.
"""

# --- Identity ---
APP_NAME = "dotfile-manager"
"""str: The human-readable application name."""

APP_LABEL = "com.dotfilemanager.sync"
"""str: The reverse-DNS style application identifier."""

NOTIFY_TITLE = "Dotfile Manager"
"""str: The title used for every desktop notification."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "dotfile-manager"
"""Path: The directory for runtime state data (logs, settings, pid)."""

# Ensure state directory exists immediately upon module import.
STATE_DIR.mkdir(parents=True, exist_ok=True)

SETTINGS_FILE = STATE_DIR / "settings.json"
"""Path: The persisted user settings (repository, remote, tracked paths)."""

LOG_FILE = STATE_DIR / "daemon.log"
"""Path: The file path for the daemon process logs."""

PID_FILE = STATE_DIR / "daemon.pid"
"""Path: The file path storing the running pass's process ID."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/dotfile-manager"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The tuning configuration file path."""

# --- Defaults ---
_HOME = Path.home()

DEFAULT_DOTFILE_PATHS = [
    str(_HOME / ".config"),
    str(_HOME / ".oh-my-zsh"),
]
"""list[str]: Directories tracked out of the box."""

DEFAULT_DOTFILES = [
    str(_HOME / ".bashrc"),
    str(_HOME / ".zshrc"),
    str(_HOME / ".vimrc"),
    str(_HOME / ".zshenv"),
    str(_HOME / ".gitconfig"),
    str(_HOME / ".vimrc.local"),
    str(_HOME / ".vimrc.before"),
]
"""list[str]: Individual files tracked out of the box."""

DEFAULT_IGNORES = [
    "*.log",
    "*.tmp",
    ".DS_Store",
    ".ssh/*",
    ".gnupg/*",
    ".git/",
]
"""list[str]: Ignore patterns seeded before any user-defined pattern."""

DEFAULT_INTERVAL = 3600
"""int: Seconds between scheduled reconciliation passes."""

# --- Git / Logic Constants ---
PRIMARY_BRANCH = "main"
"""str: The branch every dotfile repository is normalized to."""

REMOTE_NAME = "origin"
"""str: The remote the repository publishes to."""

REPO_MARKER = ".git"
"""str: The directory whose presence marks a git repository root."""

IGNORE_FILE = ".gitignore"
"""str: The ignore file maintained at the repository root."""

BOOTSTRAP_FILE = "README.md"
"""str: The placeholder file written for the bootstrap commit."""

BOOTSTRAP_MESSAGE = "Initial commit with README.md"
"""str: The commit message of the bootstrap commit."""

COMMIT_PREFIX = "Configuration changes committed"
"""str: The default leading phrase of every generated commit message."""
