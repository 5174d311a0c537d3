import datetime
import logging
import re
from dataclasses import dataclass, field

from .config import Config
from .constants import APP_NAME, NOTIFY_TITLE
from .errors import DotfileError, Signature, ToolInvocationError, TransientConflictError
from .git_wrapper import GitRepo
from .system import SystemStrategy, get_host_name, get_user_name

logger = logging.getLogger(APP_NAME)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def unquote_path(path: str) -> str:
    """Decodes a path that git quoted because it holds unusual characters.

    Quoted paths use C-style escapes, with non-ASCII bytes written as octal
    (`"caf\\303\\251"`). Unquoted paths are returned as-is.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    raw = path[1:-1].encode("utf-8").decode("unicode_escape")
    return raw.encode("latin-1").decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Change:
    """A single entry of `git status --porcelain`.

    Attributes:
        status (str): The two-letter XY status code, stripped (e.g., 'M', '??').
        path (str): The affected path (the new path for renames).
    """

    status: str
    path: str


@dataclass
class ChangeSet:
    """The paths changed since the last commit, discarded after one attempt."""

    changes: list[Change] = field(default_factory=list)

    @classmethod
    def from_porcelain(cls, lines: list[str]) -> "ChangeSet":
        """Parses porcelain v1 status lines.

        Args:
            lines (list[str]): Lines of the form 'XY path' or 'XY old -> new'.

        Returns:
            ChangeSet: The parsed changes.
        """
        changes = []
        for line in lines:
            if len(line) < 4:
                continue
            status, path = line[:2].strip(), line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            changes.append(Change(status or "?", unquote_path(path)))
        return cls(changes)

    @property
    def paths(self) -> list[str]:
        return [c.path for c in self.changes]

    def __len__(self) -> int:
        return len(self.changes)

    def __bool__(self) -> bool:
        return bool(self.changes)


def _clean(text: str) -> str:
    """Collapses control characters (newlines, NUL, escapes) into spaces."""
    return _CONTROL_CHARS.sub(" ", text).strip()


def compose_commit_message(
    prefix: str,
    host: str,
    user: str,
    when: datetime.datetime,
    changes: ChangeSet | None = None,
    mode: str = "summary",
) -> str:
    """Builds a deterministic commit message.

    Every component is stripped of control characters. The message is passed
    to git as a single argument, never through a shell.

    Args:
        prefix (str): The leading phrase.
        host (str): The host identity.
        user (str): The operator identity.
        when (datetime.datetime): The commit timestamp.
        changes (ChangeSet | None, optional): The changed paths, used in
            'files' mode. Defaults to None.
        mode (str, optional): 'summary' or 'files'. Defaults to 'summary'.

    Returns:
        str: The commit message.
    """
    prefix, host, user = _clean(prefix), _clean(host), _clean(user)
    if mode == "files" and changes:
        lines = [f"{prefix} for {host} by {user}:", ""]
        lines.extend(f"{c.status} {_clean(c.path)}" for c in changes.changes)
        return "\n".join(lines)

    stamp = when.strftime("%A %x at %X %Z").strip()
    return f"{prefix} for {host} by {user} on {stamp}."


class PublishPipeline:
    """Commits working tree changes and pushes them to the remote.

    A push rejected because the remote is ahead is recovered exactly once:
    one `pull --rebase`, then one more push. Anything else is terminal for
    the pass; the next scheduled pass is the retry boundary.

    Attributes:
        repo (GitRepo): The dotfile repository.
        config (Config): Commit message settings.
        notifier (SystemStrategy): Receives success and failure notifications.
    """

    def __init__(self, repo: GitRepo, config: Config, notifier: SystemStrategy):
        self.repo = repo
        self.config = config
        self.notifier = notifier

    def publish(self) -> bool:
        """Stages, commits and pushes any pending changes.

        Returns:
            bool: True if a commit was published, False if there was nothing
            to publish.

        Raises:
            ToolInvocationError: If staging, committing or pushing fails. The
                failure has already been logged and notified.
        """
        stage = "check git status"
        try:
            changes = ChangeSet.from_porcelain(self.repo.status_porcelain())
            if not changes:
                logger.info("No changes detected. Repository is up-to-date.")
                return False
            logger.debug(f"Changed paths: {', '.join(changes.paths)}")

            stage = "stage changes"
            self.repo.add_all()

            stage = "commit changes"
            if not self._commit(changes):
                return False

            stage = "push changes"
            self._push()
        except DotfileError as e:
            logger.error(f"Failed to {stage}: {e}")
            self.notifier.notify(NOTIFY_TITLE, f"Failed to {stage}. {e.user_message}")
            raise

        logger.info("Dotfiles updated and pushed to repo successfully.")
        self.notifier.notify(NOTIFY_TITLE, "Dotfiles updated and pushed to repo successfully.")
        return True

    def _commit(self, changes: ChangeSet) -> bool:
        message = compose_commit_message(
            self.config.commit.prefix,
            get_host_name(),
            get_user_name(),
            datetime.datetime.now().astimezone(),
            changes,
            self.config.commit.message_mode,
        )
        try:
            self.repo.commit(message)
        except ToolInvocationError as e:
            if e.signature is Signature.NOTHING_TO_COMMIT:
                logger.info("Nothing to commit, working tree clean.")
                return False
            raise
        logger.info(f"Committed {len(changes)} change(s).")
        return True

    def _push(self) -> None:
        try:
            self.repo.push()
        except TransientConflictError:
            logger.info("Conflicts detected, pulling and rebasing...")
            self.repo.pull_rebase()
            logger.info("Rebase successful, pushing again...")
            self.repo.push()
        logger.info("Changes pushed successfully.")
