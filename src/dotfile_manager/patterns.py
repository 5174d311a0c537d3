"""Ignore pattern matching for mirrored dotfiles.

Patterns are authored relative to a base directory (the home directory by
default). Matching is deliberately permissive: in the default `substring`
mode a pattern matches when it matches, glob-style, anywhere inside the
base-relative path, so `*.log` catches log files at any depth and `.ssh/*`
catches everything below any `.ssh` directory. The stricter `gitignore` mode
compiles the same patterns with gitwildmatch semantics instead.
"""

from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path

import pathspec

MATCH_MODES = ("substring", "gitignore")


def normalize_path(path: str | Path, base_dir: str | Path) -> str:
    """Strips a leading `base_dir/` prefix from a path.

    Args:
        path (str | Path): The path to normalize.
        base_dir (str | Path): The directory patterns are authored against.

    Returns:
        str: The base-relative path, or the path unchanged if it lies outside
        the base directory.
    """
    text = str(path)
    prefix = str(base_dir).rstrip("/") + "/"
    if text.startswith(prefix):
        return text[len(prefix) :]
    return text


def normalize_patterns(patterns: Iterable[str], base_dir: str | Path) -> tuple[str, ...]:
    """Builds the IgnoreSet: base-relative, non-empty, first-seen order, unique.

    Args:
        patterns (Iterable[str]): Raw patterns, relative or absolute.
        base_dir (str | Path): The directory to normalize against.

    Returns:
        tuple[str, ...]: The normalized patterns.
    """
    normalized = (normalize_path(p.strip(), base_dir) for p in patterns)
    return tuple(dict.fromkeys(p for p in normalized if p))


def should_ignore(
    path: str | Path, patterns: Iterable[str], base_dir: str | Path
) -> bool:
    """Decides whether a path is excluded by any ignore pattern.

    Pure function: no filesystem access, deterministic for equal inputs.

    Args:
        path (str | Path): The path to test.
        patterns (Iterable[str]): The ignore patterns.
        base_dir (str | Path): The directory patterns are relative to.

    Returns:
        bool: True if any pattern occurs in the base-relative path.
    """
    relative = normalize_path(path, base_dir)
    return any(
        fnmatchcase(relative, f"*{pattern}*")
        for pattern in normalize_patterns(patterns, base_dir)
    )


class PatternMatcher:
    """A compiled IgnoreSet bound to a base directory.

    Attributes:
        base_dir (Path): The directory patterns are relative to.
        patterns (tuple[str, ...]): The normalized IgnoreSet.
        mode (str): Either 'substring' (default) or 'gitignore'.
    """

    def __init__(
        self,
        patterns: Iterable[str],
        base_dir: str | Path,
        mode: str = "substring",
    ):
        if mode not in MATCH_MODES:
            raise ValueError(f"Unknown match mode '{mode}'")
        self.base_dir = Path(base_dir)
        self.patterns = normalize_patterns(patterns, base_dir)
        self.mode = mode
        self._spec = (
            pathspec.PathSpec.from_lines("gitwildmatch", self.patterns)
            if mode == "gitignore"
            else None
        )

    def matches(self, path: str | Path) -> bool:
        """Returns True if the path is excluded."""
        if self._spec is None:
            return should_ignore(path, self.patterns, self.base_dir)
        return self._spec.match_file(normalize_path(path, self.base_dir))

    def __repr__(self) -> str:
        return f"PatternMatcher({list(self.patterns)!r}, mode={self.mode!r})"
