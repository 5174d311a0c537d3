import logging
import re
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    COMMIT_PREFIX,
    CONFIG_FILE,
    DEFAULT_INTERVAL,
    PRIMARY_BRANCH,
    REMOTE_NAME,
)
from .errors import DEFAULT_SIGNATURES, Signature
from .patterns import MATCH_MODES

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '5MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


@dataclass
class CoreConfig:
    """Core repository settings.

    Attributes:
        primary_branch (str): The branch the repository is normalized to.
        remote_name (str): The git remote to publish to.
        base_dir (str): The directory ignore patterns are relative to.
    """

    primary_branch: str = PRIMARY_BRANCH
    remote_name: str = REMOTE_NAME
    base_dir: str = field(default_factory=lambda: str(Path.home()))


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class DaemonConfig:
    """Scheduling settings.

    Attributes:
        interval (int): Seconds between scheduled reconciliation passes.
    """

    interval: int = DEFAULT_INTERVAL


@dataclass
class FilesConfig:
    """Mirroring settings.

    Attributes:
        delete_extraneous (bool): Whether mirroring propagates source deletions.
        match_mode (str): 'substring' (permissive) or 'gitignore' (strict).
        manage_gitignore (bool): Whether each pass merges patterns into .gitignore.
    """

    delete_extraneous: bool = True
    match_mode: str = "substring"
    manage_gitignore: bool = True


@dataclass
class CommitConfig:
    """Commit message settings.

    Attributes:
        message_mode (str): 'summary' (host/user/time) or 'files' (changed paths).
        prefix (str): The leading phrase of every generated message.
    """

    message_mode: str = "summary"
    prefix: str = COMMIT_PREFIX


@dataclass
class SignaturesConfig:
    """Git output substrings used to classify failures."""

    fetch_first: str = DEFAULT_SIGNATURES[Signature.FETCH_FIRST]
    no_commits: str = DEFAULT_SIGNATURES[Signature.NO_COMMITS]
    no_remote: str = DEFAULT_SIGNATURES[Signature.NO_REMOTE]
    nothing_to_commit: str = DEFAULT_SIGNATURES[Signature.NOTHING_TO_COMMIT]

    def as_mapping(self) -> dict[Signature, str]:
        """Returns the signatures keyed by their enum member."""
        return {sig: getattr(self, sig.value) for sig in Signature}


_SECTIONS = ("core", "limits", "daemon", "files", "commit", "signatures")


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Repository settings.
        limits (LimitsConfig): Resource limits.
        daemon (DaemonConfig): Scheduling settings.
        files (FilesConfig): Mirroring settings.
        commit (CommitConfig): Commit message settings.
        signatures (SignaturesConfig): Failure classification strings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    daemon: DaemonConfig = field(default_factory=DaemonConfig)
    files: FilesConfig = field(default_factory=FilesConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    signatures: SignaturesConfig = field(default_factory=SignaturesConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from disk, applying defaults where necessary.

        Args:
            path (Path | None): The TOML file to read. Defaults to CONFIG_FILE.

        Returns:
            Config: The populated configuration object.
        """
        instance = cls()
        path = path or CONFIG_FILE
        if path.exists():
            instance._merge_from_file(path)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges its sections into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
            return
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        unknown = set(data) - set(_SECTIONS)
        if unknown:
            logger.warning(f"Unknown config sections: {', '.join(sorted(unknown))}. Ignoring.")

        for section in _SECTIONS:
            if isinstance(data.get(section), dict):
                current = getattr(self, section)
                setattr(self, section, self._update_dataclass(section, current, data[section]))

        if self.files.match_mode not in MATCH_MODES:
            logger.warning(
                f"Config error in [files].match_mode: '{self.files.match_mode}'. "
                "Falling back to 'substring'."
            )
            self.files.match_mode = "substring"
        if self.commit.message_mode not in ("summary", "files"):
            logger.warning(
                f"Config error in [commit].message_mode: '{self.commit.message_mode}'. "
                "Falling back to 'summary'."
            )
            self.commit.message_mode = "summary"

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Process valid keys
        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k == "interval":
                    filtered_updates[k] = parse_time(v)
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)
