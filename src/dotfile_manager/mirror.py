import filecmp
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .constants import APP_NAME, REPO_MARKER
from .patterns import PatternMatcher

logger = logging.getLogger(APP_NAME)


def is_repository(path: Path) -> bool:
    """Checks whether a directory is the root of a separate git repository.

    Args:
        path (Path): The directory to inspect.

    Returns:
        bool: True if the directory contains a repository marker.
    """
    return (path / REPO_MARKER).is_dir()


@dataclass
class MirrorStats:
    """Outcome of a best-effort mirror operation.

    Attributes:
        copied (int): Files or links written to the destination.
        removed (int): Destination entries deleted.
        failed (list[tuple[Path, OSError]]): Entries that could not be mirrored.
    """

    copied: int = 0
    removed: int = 0
    failed: list[tuple[Path, OSError]] = field(default_factory=list)

    @property
    def changed(self) -> int:
        """The number of destination entries that were written or deleted."""
        return self.copied + self.removed

    @property
    def ok(self) -> bool:
        """True if every entry was mirrored without error."""
        return not self.failed

    def merge(self, other: "MirrorStats") -> None:
        """Accumulates another result into this one."""
        self.copied += other.copied
        self.removed += other.removed
        self.failed.extend(other.failed)

    def _fail(self, path: Path, action: str, error: OSError) -> None:
        logger.error(f"MIRROR ERROR: Failed to {action} {path}: {error}")
        self.failed.append((path, error))


def _ensure_dir(path: Path, stats: MirrorStats, replace: bool = False) -> bool:
    if path.is_dir() and not path.is_symlink():
        return True
    if path.exists() or path.is_symlink():
        if not replace:
            stats._fail(
                path, "create directory", NotADirectoryError(f"{path} is not a directory")
            )
            return False
        logger.debug(f"Replacing file with directory: {path}")
        if not _remove(path, stats):
            return False
    try:
        path.mkdir(parents=True)
        logger.debug(f"Created directory: {path}")
        return True
    except OSError as e:
        stats._fail(path, "create directory", e)
        return False


def _remove(path: Path, stats: MirrorStats) -> bool:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        stats._fail(path, "remove", e)
        return False
    stats.removed += 1
    logger.debug(f"Removed: {path}")
    return True


def _copy_entry(source: Path, dest: Path, stats: MirrorStats) -> None:
    if dest.is_dir() and not dest.is_symlink():
        logger.debug(f"Replacing directory with file: {dest}")
        if not _remove(dest, stats):
            return
    try:
        if source.is_symlink():
            target = os.readlink(source)
            if dest.is_symlink() and os.readlink(dest) == target:
                return
            if dest.is_symlink() or dest.exists():
                dest.unlink()
            os.symlink(target, dest)
        else:
            if dest.is_file() and not dest.is_symlink():
                if filecmp.cmp(source, dest, shallow=False):
                    return
            elif dest.is_symlink():
                dest.unlink()
            shutil.copy2(source, dest)
        stats.copied += 1
        logger.debug(f"Copied file: {source}")
    except OSError as e:
        stats._fail(source, "copy", e)


def _sync_dir(
    source: Path,
    dest: Path,
    matcher: PatternMatcher,
    delete_extraneous: bool,
    stats: MirrorStats,
) -> None:
    try:
        entries = sorted(source.iterdir())
    except OSError as e:
        stats._fail(source, "list", e)
        return

    kept: set[str] = set()
    for entry in entries:
        is_dir = entry.is_dir() and not entry.is_symlink()
        if is_dir and is_repository(entry):
            logger.debug(f"Skipping git repository: {entry}")
            continue
        if matcher.matches(entry):
            logger.debug(f"Excluded: {entry}")
            continue

        kept.add(entry.name)
        target = dest / entry.name
        if is_dir:
            if _ensure_dir(target, stats, replace=True):
                _sync_dir(entry, target, matcher, delete_extraneous, stats)
        elif entry.is_file() or entry.is_symlink():
            _copy_entry(entry, target, stats)
        else:
            logger.debug(f"Skipping special file: {entry}")

    if not delete_extraneous:
        return

    try:
        existing = sorted(dest.iterdir())
    except OSError as e:
        stats._fail(dest, "list", e)
        return
    for stale in existing:
        if stale.name not in kept:
            _remove(stale, stats)


def mirror_tree(
    source: Path,
    dest: Path,
    matcher: PatternMatcher,
    delete_extraneous: bool = True,
) -> MirrorStats:
    """Mirrors a directory tree into the destination, one way and best effort.

    Nested repositories and ignored entries are skipped. With
    `delete_extraneous`, destination entries that are absent from (or ignored
    in) the source are removed so that deletions propagate. A failure on one
    entry is logged and recorded; siblings are still mirrored.

    Args:
        source (Path): The tracked directory.
        dest (Path): The destination inside the repository working tree.
        matcher (PatternMatcher): The compiled ignore patterns.
        delete_extraneous (bool, optional): Whether to propagate deletions.
                                            Defaults to True.

    Returns:
        MirrorStats: Counts of copied/removed entries and per-entry failures.
    """
    stats = MirrorStats()
    if not source.is_dir():
        logger.debug(f"Tracked directory missing, skipping: {source}")
        return stats
    if _ensure_dir(dest, stats):
        _sync_dir(source, dest, matcher, delete_extraneous, stats)
    logger.debug(f"Synchronized files from {source} to {dest} ({stats.changed} changed)")
    return stats


def mirror_file(source: Path, dest_dir: Path, matcher: PatternMatcher) -> MirrorStats:
    """Mirrors a single tracked file into a destination directory.

    A present, non-ignored source is copied under its base name, replacing a
    directory left at that name. A source that no longer exists has its
    previously mirrored copy deleted, so removing a tracked file propagates
    to the repository.

    Args:
        source (Path): The tracked file.
        dest_dir (Path): The directory receiving the copy.
        matcher (PatternMatcher): The compiled ignore patterns.

    Returns:
        MirrorStats: Counts of copied/removed entries and per-entry failures.
    """
    stats = MirrorStats()
    dest = dest_dir / source.name

    if source.exists() or source.is_symlink():
        if matcher.matches(source):
            logger.debug(f"Excluded: {source}")
        elif source.is_dir() and not source.is_symlink():
            stats._fail(source, "copy", IsADirectoryError(f"{source} is a directory"))
        else:
            _copy_entry(source, dest, stats)
    elif dest.exists() or dest.is_symlink():
        _remove(dest, stats)

    return stats
