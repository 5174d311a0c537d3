import logging
import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

from .constants import APP_NAME, REPO_MARKER
from .errors import (
    Signature,
    ToolInvocationError,
    TransientConflictError,
    classify,
)

logger = logging.getLogger(APP_NAME)


def network_env() -> dict[str, str]:
    """Builds an environment that keeps network git commands non-interactive.

    Background passes have no terminal, so credential and host-key prompts
    must fail fast instead of blocking the cycle.

    Returns:
        dict[str, str]: A copy of the process environment with prompts disabled.
    """
    env = os.environ.copy()
    env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


class GitRepo:
    """A wrapper around the Git command-line interface for the dotfile repository.

    Every command runs with the repository root as its working directory, and
    its combined stdout/stderr stream is captured. Non-zero exits are raised as
    `ToolInvocationError` (or `TransientConflictError` for a rejected push)
    carrying the classified failure signature.

    Attributes:
        path (Path): The file system path to the repository root.
        signatures (Mapping[Signature, str] | None): Output substrings used to
            classify failures. None selects the built-in defaults.
    """

    def __init__(self, path: Path, signatures: Mapping[Signature, str] | None = None):
        """Initializes the GitRepo instance.

        The directory does not need to be a repository yet; see `init`.

        Args:
            path (Path): The path to the repository root directory.
            signatures (Mapping[Signature, str] | None, optional): Failure
                signatures. Defaults to None.
        """
        self.path = path
        self.signatures = signatures

    def _run(
        self, args: list[str], env: dict | None = None, strip: bool = True
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.
            strip (bool, optional): Whether to strip surrounding whitespace from
                                    the output. Defaults to True.

        Returns:
            str: The captured output of the command.

        Raises:
            TransientConflictError: If a push was rejected with 'fetch first'.
            ToolInvocationError: If the command fails for any other reason.
        """
        logger.debug(f"Executing command: git {' '.join(args)}")
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=True,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            output = (e.stdout or "").strip()
            signature = classify(output, self.signatures)
            if signature is Signature.FETCH_FIRST:
                raise TransientConflictError(args, output, signature) from e
            raise ToolInvocationError(args, output, signature) from e
        except OSError as e:
            raise ToolInvocationError(args, str(e)) from e

        output = res.stdout or ""
        return output.strip() if strip else output

    def is_initialized(self) -> bool:
        """Checks for the repository marker directory at the root."""
        return (self.path / REPO_MARKER).is_dir()

    def init(self) -> None:
        """Initializes an empty repository at the root."""
        self._run(["init"])

    def has_commits(self) -> bool:
        """Probes whether HEAD resolves to a commit.

        Returns:
            bool: True if the repository has at least one commit.
        """
        try:
            self._run(["rev-parse", "HEAD"])
            return True
        except ToolInvocationError as e:
            if e.signature is Signature.NO_COMMITS:
                logger.info(
                    "No commits yet in the repository. "
                    "This is expected for a new repository."
                )
            else:
                logger.debug(f"rev-parse HEAD failed: {e.output}")
            return False

    def remote_url(self, name: str) -> str | None:
        """Retrieves the URL registered for a remote.

        Args:
            name (str): The remote name (e.g., 'origin').

        Returns:
            str | None: The URL, or None if the remote is not registered.

        Raises:
            ToolInvocationError: If git fails for another reason.
        """
        try:
            return self._run(["remote", "get-url", name])
        except ToolInvocationError as e:
            if e.signature is Signature.NO_REMOTE or "No such remote" in e.output:
                logger.info(
                    f"Remote {name} not set. This is expected for a new repository."
                )
                return None
            raise

    def add_remote(self, name: str, url: str) -> None:
        """Registers a new remote."""
        self._run(["remote", "add", name, url])

    def ls_remote(self, url: str) -> str:
        """Lists the references advertised by a remote, proving it is reachable.

        Args:
            url (str): The remote URL.

        Returns:
            str: The raw ls-remote listing.
        """
        return self._run(["ls-remote", url], env=network_env())

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch.

        Returns:
            str: The name of the current branch.
        """
        return self._run(["branch", "--show-current"])

    def branch_exists(self, branch: str) -> bool:
        """Checks whether a local branch exists."""
        try:
            self._run(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"])
            return True
        except ToolInvocationError:
            return False

    def checkout(self, branch: str, create: bool = False) -> None:
        """Switches to a branch, optionally creating it.

        Args:
            branch (str): The target branch name.
            create (bool, optional): Whether to create the branch (`-b`).
                                     Defaults to False.
        """
        cmd = ["checkout"]
        if create:
            cmd.append("-b")
        cmd.append(branch)
        self._run(cmd)

    def upstream(self, branch: str) -> str | None:
        """Resolves the upstream tracking reference of a branch.

        Args:
            branch (str): The local branch name.

        Returns:
            str | None: The upstream (e.g., 'origin/main') or None if unset.
        """
        ref = f"{branch}@{{upstream}}"
        try:
            return self._run(["rev-parse", "--abbrev-ref", "--symbolic-full-name", ref])
        except ToolInvocationError as e:
            logger.debug(f"No upstream for {branch}: {e.output}")
            return None

    def push_set_upstream(self, remote: str, branch: str) -> None:
        """Pushes a branch and records the remote branch as its upstream."""
        self._run(["push", "--set-upstream", remote, branch], env=network_env())

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"], strip=False)
        return [line for line in output.splitlines() if line.strip()]

    def add(self, path: str) -> None:
        """Stages a single path."""
        self._run(["add", path])

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "."])

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
        """
        self._run(["commit", "-m", message])

    def push(self) -> None:
        """Pushes the current branch to its upstream."""
        self._run(["push"], env=network_env())

    def pull_rebase(self) -> None:
        """Fetches the upstream and rebases local commits onto it."""
        self._run(["pull", "--rebase"], env=network_env())
