"""The reconciliation pass: set up the repository, mirror dotfiles, publish.

One pass runs the fixed sequence

    repository root -> init -> remote -> bootstrap/tracking -> ignore file
    -> mirror tracked directories -> mirror tracked files -> publish

and stops at the first fatal failure. Mirroring is best effort: per-entry
IO failures are logged and the pass still publishes whatever succeeded.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import Config
from .constants import APP_NAME, NOTIFY_TITLE
from .errors import ConfigurationError, DotfileError
from .mirror import MirrorStats, is_repository, mirror_file, mirror_tree
from .patterns import PatternMatcher
from .publish import PublishPipeline
from .repository import RepositoryManager, refresh_ignore_file
from .settings import Settings
from .system import SystemStrategy

logger = logging.getLogger(APP_NAME)


@dataclass
class CycleResult:
    """Outcome of a single reconciliation pass.

    Attributes:
        ok (bool): False if the pass was aborted by a fatal error.
        published (bool): Whether a commit was pushed.
        mirrored (MirrorStats): Accumulated mirror results.
        error (DotfileError | None): The fatal error, if any.
    """

    ok: bool = True
    published: bool = False
    mirrored: MirrorStats = field(default_factory=MirrorStats)
    error: DotfileError | None = None


class Reconciler:
    """Runs reconciliation passes for one set of settings.

    Settings are taken as they are at construction; repository state is
    re-probed on every pass.

    Attributes:
        settings (Settings): The repository, remote and tracked entries.
        config (Config): Tuning configuration.
        notifier (SystemStrategy): Receives failure and success notifications.
    """

    def __init__(self, settings: Settings, config: Config, notifier: SystemStrategy):
        self.settings = settings
        self.config = config
        self.notifier = notifier

    def _fail(self, result: CycleResult, error: DotfileError, notify: bool = True) -> CycleResult:
        logger.error(f"CYCLE ABORTED: {error}")
        if notify:
            self.notifier.notify(NOTIFY_TITLE, error.user_message)
        result.ok = False
        result.error = error
        return result

    def run_once(self) -> CycleResult:
        """Executes one full reconciliation pass.

        Never raises `DotfileError`; failures are logged, notified and
        reported through the returned result.

        Returns:
            CycleResult: The outcome of the pass.
        """
        result = CycleResult()

        if not self.settings.repo_path:
            return self._fail(
                result,
                ConfigurationError(
                    "Git repository not set. Use 'dotfile-manager set-repo <path>' to set it."
                ),
            )

        root = Path(self.settings.repo_path).expanduser()
        manager = RepositoryManager(root, self.settings.remote_url, self.config)
        try:
            manager.ensure()
        except DotfileError as e:
            return self._fail(result, e)

        base_dir = Path(self.config.core.base_dir).expanduser()
        matcher = PatternMatcher(
            self.settings.ignore_patterns, base_dir, self.config.files.match_mode
        )

        if self.config.files.manage_gitignore:
            try:
                refresh_ignore_file(root, list(matcher.patterns))
            except OSError as e:
                logger.error(f"Failed to update ignore file: {e}")

        result.mirrored = self.mirror_all(root, matcher)

        publisher = PublishPipeline(manager.repo, self.config, self.notifier)
        try:
            result.published = publisher.publish()
        except DotfileError as e:
            # PublishPipeline has already notified.
            return self._fail(result, e, notify=False)

        return result

    def mirror_all(self, root: Path, matcher: PatternMatcher) -> MirrorStats:
        """Mirrors every tracked directory and file into the repository.

        Args:
            root (Path): The repository root.
            matcher (PatternMatcher): The compiled ignore patterns.

        Returns:
            MirrorStats: The accumulated results.
        """
        stats = MirrorStats()
        delete = self.config.files.delete_extraneous

        for path_str in self.settings.dotfile_paths:
            source = Path(path_str).expanduser()
            if is_repository(source):
                logger.debug(f"Skipping git repository: {source}")
                continue
            stats.merge(mirror_tree(source, root / source.name, matcher, delete))

        for file_str in self.settings.dotfiles:
            stats.merge(mirror_file(Path(file_str).expanduser(), root, matcher))

        if stats.failed:
            logger.warning(
                f"Mirroring finished with {len(stats.failed)} failed entr"
                f"{'y' if len(stats.failed) == 1 else 'ies'}; publishing the rest."
            )
        else:
            logger.debug(f"Mirroring finished: {stats.changed} change(s).")
        return stats
