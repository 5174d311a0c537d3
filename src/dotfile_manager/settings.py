"""Persistent user settings: the repository, its remote, and what to track.

Settings are mutated only by explicit add/remove/set operations, and every
mutation is written to disk immediately. Defaults are always seeded ahead of
user entries, so list order is defaults first, then user additions in the
order they were made, with duplicates dropped.
"""

import contextlib
import json
import logging
import os
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from pathlib import Path

from .constants import (
    APP_NAME,
    DEFAULT_DOTFILE_PATHS,
    DEFAULT_DOTFILES,
    DEFAULT_IGNORES,
    SETTINGS_FILE,
)

logger = logging.getLogger(APP_NAME)


def merge_unique(defaults: Iterable[str], user: Iterable[str]) -> list[str]:
    """Merges two sequences with set-like insertion semantics.

    Args:
        defaults (Iterable[str]): Entries seeded first.
        user (Iterable[str]): User entries appended after the defaults.

    Returns:
        list[str]: The first-seen ordered, duplicate-free merge.
    """
    return list(dict.fromkeys([*defaults, *user]))


@dataclass
class Settings:
    """The mutable configuration of a dotfile repository.

    Attributes:
        repo_path (str | None): The local repository root.
        remote_url (str | None): The URL registered as the publishing remote.
        dotfile_paths (list[str]): Tracked directories.
        dotfiles (list[str]): Tracked individual files.
        ignore_patterns (list[str]): Glob-like exclusion patterns.
    """

    repo_path: str | None = None
    remote_url: str | None = None
    dotfile_paths: list[str] = field(default_factory=lambda: list(DEFAULT_DOTFILE_PATHS))
    dotfiles: list[str] = field(default_factory=lambda: list(DEFAULT_DOTFILES))
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORES))

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Builds settings from persisted data, seeding defaults first."""

        def _strings(key: str) -> list[str]:
            value = data.get(key) or []
            if not isinstance(value, list):
                logger.warning(f"Ignoring malformed setting '{key}': expected a list.")
                return []
            return [str(v) for v in value]

        return cls(
            repo_path=data.get("repo_path") or None,
            remote_url=data.get("remote_url") or None,
            dotfile_paths=merge_unique(DEFAULT_DOTFILE_PATHS, _strings("dotfile_paths")),
            dotfiles=merge_unique(DEFAULT_DOTFILES, _strings("dotfiles")),
            ignore_patterns=merge_unique(DEFAULT_IGNORES, _strings("ignore_patterns")),
        )


class SettingsStore:
    """Loads, mutates and atomically persists `Settings`.

    Attributes:
        path (Path): The JSON document backing the store.
        settings (Settings): The current in-memory settings.
    """

    def __init__(self, path: Path = SETTINGS_FILE):
        self.path = path
        self.settings = self._load()

    def _load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            data = json.loads(self.path.read_text() or "{}")
            if not isinstance(data, dict):
                raise ValueError("settings document is not an object")
            return Settings.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}. Using defaults.")
            return Settings()

    def save(self) -> None:
        """Persists the settings to disk atomically.

        Raises:
            OSError: If the document cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.path.with_suffix(".tmp")
        try:
            with open(tmp_file, "w") as f:
                json.dump(asdict(self.settings), f, indent=2)
                f.flush()
                os.fsync(f.fileno())  # Force hardware write

            # Atomic pointer swap at the filesystem level
            os.replace(tmp_file, self.path)
        except OSError:
            if tmp_file.exists():
                with contextlib.suppress(OSError):
                    tmp_file.unlink()
            raise

    # --- Scalars ---

    def set_repo(self, repo: str) -> None:
        self.settings.repo_path = repo
        self.save()
        logger.info(f"Git repository set to: {repo}")

    def set_remote(self, url: str) -> None:
        self.settings.remote_url = url
        self.save()
        logger.info(f"Remote origin set to: {url}")

    # --- Lists ---

    def _add(self, attr: str, value: str, label: str) -> bool:
        entries: list[str] = getattr(self.settings, attr)
        if value in entries:
            logger.debug(f"{label} already tracked: {value}")
            return False
        entries.append(value)
        self.save()
        logger.debug(f"Added {label.lower()}: {value}")
        return True

    def _remove(self, attr: str, value: str, label: str) -> bool:
        entries: list[str] = getattr(self.settings, attr)
        if value not in entries:
            logger.debug(f"{label} not found: {value}")
            return False
        entries.remove(value)
        self.save()
        logger.debug(f"Removed {label.lower()}: {value}")
        return True

    def add_dotfile_path(self, path: str) -> bool:
        """Tracks a directory. Returns False if it was already tracked."""
        return self._add("dotfile_paths", path, "Dotfile path")

    def remove_dotfile_path(self, path: str) -> bool:
        """Stops tracking a directory. Returns False if it was not tracked."""
        return self._remove("dotfile_paths", path, "Dotfile path")

    def add_dotfile(self, file: str) -> bool:
        """Tracks an individual file. Returns False if it was already tracked."""
        return self._add("dotfiles", file, "Dotfile")

    def remove_dotfile(self, file: str) -> bool:
        """Stops tracking an individual file. Returns False if it was not tracked."""
        return self._remove("dotfiles", file, "Dotfile")

    def add_ignore_pattern(self, pattern: str) -> bool:
        """Adds an ignore pattern. Returns False if it already existed."""
        return self._add("ignore_patterns", pattern, "Ignore pattern")

    def remove_ignore_pattern(self, pattern: str) -> bool:
        """Removes an ignore pattern. Returns False if it did not exist."""
        return self._remove("ignore_patterns", pattern, "Ignore pattern")
