import logging
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .constants import APP_NAME, BOOTSTRAP_FILE, BOOTSTRAP_MESSAGE, IGNORE_FILE
from .errors import (
    ConfigurationError,
    PreconditionError,
    ToolInvocationError,
    TransientConflictError,
)
from .git_wrapper import GitRepo
from .system import get_host_name, get_user_name

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class RepositoryState:
    """A snapshot of the repository's setup state.

    Always re-derived from disk and git metadata; never cached across passes,
    since the repository may be changed by hand between runs.

    Attributes:
        root_exists (bool): Whether the root directory exists.
        is_repo (bool): Whether the root carries a repository marker.
        has_commits (bool): Whether HEAD resolves to a commit.
        remote_url (str | None): The URL registered locally for the remote.
        branch (str | None): The checked-out branch.
        upstream (str | None): The upstream of the primary branch.
    """

    root_exists: bool = False
    is_repo: bool = False
    has_commits: bool = False
    remote_url: str | None = None
    branch: str | None = None
    upstream: str | None = None

    @property
    def tracking(self) -> bool:
        """True once the primary branch tracks a remote branch."""
        return self.upstream is not None


def refresh_ignore_file(repo_root: Path, patterns: list[str]) -> list[str]:
    """Merges ignore patterns into the repository's ignore file.

    The file is additive-only: existing lines are preserved untouched and
    patterns not yet present are appended, one per line.

    Args:
        repo_root (Path): The repository root.
        patterns (list[str]): The patterns that must be present.

    Returns:
        list[str]: The patterns appended by this call.

    Raises:
        OSError: If the ignore file cannot be read or written.
    """
    ignore_file = repo_root / IGNORE_FILE

    content = ""
    if ignore_file.exists():
        content = ignore_file.read_text()
    else:
        logger.debug(f"{IGNORE_FILE} file does not exist. It will be created.")

    existing = set(content.splitlines())
    added = [p for p in dict.fromkeys(patterns) if p and p not in existing]
    if not added:
        return []

    with open(ignore_file, "a") as f:
        prefix = "\n" if content and not content.endswith("\n") else ""
        f.write(prefix + "".join(f"{p}\n" for p in added))
    logger.debug(f"{IGNORE_FILE} updated: {', '.join(added)}")
    return added


class RepositoryManager:
    """Owns the lifecycle of the local dotfile repository and its remote.

    `ensure` drives the setup state machine once per pass. Each step is a
    precondition of the next and raises on failure, so a partially set-up
    repository never proceeds to commit or push.

    Attributes:
        root (Path): The repository root.
        remote_url (str | None): The configured remote URL.
        config (Config): Tuning configuration (branch, remote name, signatures).
        repo (GitRepo): The git interface bound to `root`.
    """

    def __init__(self, root: Path, remote_url: str | None, config: Config | None = None):
        self.root = root
        self.remote_url = remote_url
        self.config = config or Config()
        self.repo = GitRepo(root, self.config.signatures.as_mapping())

    @property
    def branch(self) -> str:
        return self.config.core.primary_branch

    @property
    def remote_name(self) -> str:
        return self.config.core.remote_name

    def probe(self) -> RepositoryState:
        """Derives the current RepositoryState without changing anything.

        Returns:
            RepositoryState: The freshly computed state.
        """
        if not self.root.is_dir():
            return RepositoryState(root_exists=self.root.exists())
        if not self.repo.is_initialized():
            return RepositoryState(root_exists=True)

        return RepositoryState(
            root_exists=True,
            is_repo=True,
            has_commits=self.repo.has_commits(),
            remote_url=self.repo.remote_url(self.remote_name),
            branch=self.repo.current_branch() or None,
            upstream=self.repo.upstream(self.branch),
        )

    def ensure(self) -> RepositoryState:
        """Brings the repository to a publishable state.

        Steps: root directory, initialization, remote registration, bootstrap
        commit, remote reachability, branch normalization, tracking branch.
        Reachability and tracking are only attempted while the primary branch
        has no upstream.

        Returns:
            RepositoryState: The state after setup.

        Raises:
            ConfigurationError: If no remote URL is configured.
            PreconditionError: If the root or remote is unusable.
            ToolInvocationError: If a git command fails.
        """
        self.ensure_root()
        self.ensure_initialized()
        self.ensure_remote()
        self.ensure_bootstrap_commit()

        tracking = self.repo.upstream(self.branch) is not None
        if not tracking:
            self.check_remote_reachable()
        self.ensure_branch()
        if not tracking:
            self.establish_tracking()

        return self.probe()

    def ensure_root(self) -> None:
        """Creates the repository directory if it does not exist."""
        if not self.root.exists():
            try:
                self.root.mkdir(parents=True)
                logger.debug(f"Created directory: {self.root}")
            except OSError as e:
                raise PreconditionError(
                    f"Failed to create directory: {self.root}. Error: {e}"
                ) from e
        elif not self.root.is_dir():
            raise PreconditionError(f"{self.root} exists but is not a directory")

    def ensure_initialized(self) -> None:
        """Initializes the repository if no repository marker is present."""
        if self.repo.is_initialized():
            return
        logger.info("Initializing Git repository...")
        self.repo.init()
        logger.info("Git repository initialized")

    def ensure_remote(self) -> None:
        """Registers the configured remote URL on the local repository."""
        if not self.remote_url:
            raise ConfigurationError(
                "Remote origin URL not set. Use 'dotfile-manager set-remote <url>' to set it."
            )

        registered = self.repo.remote_url(self.remote_name)
        if registered is None:
            logger.debug(f"Setting up remote {self.remote_name}...")
            self.repo.add_remote(self.remote_name, self.remote_url)
            logger.debug("Remote origin set successfully.")
        elif registered != self.remote_url:
            logger.warning(
                f"Remote {self.remote_name} points to {registered}, "
                f"not the configured {self.remote_url}. Leaving it unchanged."
            )
        else:
            logger.debug("Remote origin already exists.")

    def ensure_bootstrap_commit(self) -> None:
        """Creates a placeholder first commit in an empty repository."""
        if self.repo.has_commits():
            return

        logger.info(f"No commits found. Creating initial {BOOTSTRAP_FILE} and committing...")
        readme = self.root / BOOTSTRAP_FILE
        content = f"# Dotfiles for {get_user_name()} on {get_host_name()}"
        if not readme.exists():
            try:
                readme.write_text(content + "\n")
                logger.debug(f"Created {BOOTSTRAP_FILE} with content: {content}")
            except OSError as e:
                raise PreconditionError(f"Failed to create {BOOTSTRAP_FILE}: {e}") from e

        self.repo.add(BOOTSTRAP_FILE)
        self.repo.commit(BOOTSTRAP_MESSAGE)
        logger.debug(f"Initial commit with {BOOTSTRAP_FILE} created.")

    def check_remote_reachable(self) -> None:
        """Verifies the remote exists and answers before tracking is set up."""
        try:
            self.repo.ls_remote(self.remote_url or "")
        except ToolInvocationError as e:
            logger.error(
                f"The remote repository '{self.remote_url}' does not exist "
                f"or is unreachable. Git output: {e.output}"
            )
            raise PreconditionError(
                f"Remote repository unreachable: {e.output or self.remote_url}"
            ) from e

    def ensure_branch(self) -> None:
        """Switches to the primary branch, creating it if necessary."""
        current = self.repo.current_branch()
        if current == self.branch:
            return
        if self.repo.branch_exists(self.branch):
            logger.info(f"Switching from '{current}' to '{self.branch}'.")
            self.repo.checkout(self.branch)
        else:
            logger.info(f"Creating branch '{self.branch}' (was '{current}').")
            self.repo.checkout(self.branch, create=True)

    def establish_tracking(self) -> None:
        """Pushes the primary branch with upstream tracking configured."""
        try:
            self.repo.push_set_upstream(self.remote_name, self.branch)
        except TransientConflictError as e:
            logger.error(
                "Push failed because the remote repository contains "
                "commits that are not present locally."
            )
            raise PreconditionError(
                "Push failed due to remote conflicts. Run "
                f"'git pull --rebase {self.remote_name} {self.branch}' manually."
            ) from e
        logger.debug("Tracking branch set up successfully.")
