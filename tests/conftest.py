"""Shared fixtures: a scripted stand-in for the git command line."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dotfile_manager.config import Config
from dotfile_manager.errors import (
    Signature,
    ToolInvocationError,
    TransientConflictError,
    classify,
)
from dotfile_manager.git_wrapper import GitRepo


def snapshot(root: Path) -> dict[str, bytes]:
    """Returns the working tree contents, excluding the repository marker."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and ".git" not in p.relative_to(root).parts
    }


class FakeGit:
    """Emulates the subset of git the engine uses, against a real directory.

    Failures are raised exactly as `GitRepo._run` raises them: classified
    `ToolInvocationError`s, or `TransientConflictError` for 'fetch first'.

    Attributes:
        calls (list[list[str]]): Every argument vector received, in order.
        push_failures (list[str]): Outputs consumed by upcoming pushes; each
            entry makes one push fail with that output.
        rebase_failures (list[str]): Outputs consumed by upcoming rebases.
        reachable (bool): Whether ls-remote succeeds.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.commits: list[tuple[str, dict[str, bytes]]] = []
        self.remotes: dict[str, str] = {}
        self.branch = "master"
        self.branches: set[str] = set()
        self.upstream: str | None = None
        self.pushes = 0
        self.rebases = 0
        self.push_failures: list[str] = []
        self.rebase_failures: list[str] = []
        self.reachable = True

    def count(self, *prefix: str) -> int:
        """Counts received commands starting with the given arguments."""
        return sum(1 for c in self.calls if c[: len(prefix)] == list(prefix))

    def _fail(self, repo: GitRepo, args: list[str], output: str) -> None:
        signature = classify(output, repo.signatures)
        if signature is Signature.FETCH_FIRST:
            raise TransientConflictError(args, output, signature)
        raise ToolInvocationError(args, output, signature)

    def __call__(
        self, repo: GitRepo, args: list[str], env: dict | None = None, strip: bool = True
    ) -> str:
        self.calls.append(list(args))
        root = repo.path
        cmd = args[0]

        if cmd == "init":
            (root / ".git").mkdir()
            return f"Initialized empty Git repository in {root}/.git/"

        if cmd == "rev-parse":
            if args[1] == "HEAD":
                if self.commits:
                    return "0" * 40
                self._fail(
                    repo,
                    args,
                    "fatal: ambiguous argument 'HEAD': unknown revision or path "
                    "not in the working tree.",
                )
            if args[1] == "--verify":
                if args[-1].removeprefix("refs/heads/") in self.branches:
                    return "0" * 40
                self._fail(repo, args, "")
            if args[1] == "--abbrev-ref":
                if self.upstream:
                    return self.upstream
                self._fail(repo, args, f"fatal: no upstream configured for branch '{self.branch}'")

        if cmd == "remote":
            name = args[2]
            if args[1] == "get-url":
                if name in self.remotes:
                    return self.remotes[name]
                self._fail(repo, args, f"error: No such remote '{name}'")
            if args[1] == "add":
                self.remotes[name] = args[3]
                return ""

        if cmd == "ls-remote":
            if self.reachable:
                return ""
            self._fail(
                repo,
                args,
                "ERROR: Repository not found.\n"
                "fatal: Could not read from remote repository.",
            )

        if cmd == "branch":
            return self.branch

        if cmd == "checkout":
            target = args[-1]
            if "-b" in args:
                self.branches.add(target)
            self.branch = target
            return f"Switched to branch '{target}'"

        if cmd == "status":
            last = self.commits[-1][1] if self.commits else {}
            current = snapshot(root)
            lines = []
            for path in sorted(set(last) | set(current)):
                if path not in last:
                    lines.append(f"?? {path}")
                elif path not in current:
                    lines.append(f" D {path}")
                elif last[path] != current[path]:
                    lines.append(f" M {path}")
            return "".join(f"{line}\n" for line in lines)

        if cmd == "add":
            return ""

        if cmd == "commit":
            current = snapshot(root)
            if self.commits and self.commits[-1][1] == current:
                self._fail(
                    repo, args, "On branch main\nnothing to commit, working tree clean"
                )
            self.commits.append((args[2], current))
            self.branches.add(self.branch)
            return ""

        if cmd == "push":
            if self.push_failures:
                self._fail(repo, args, self.push_failures.pop(0))
            if "--set-upstream" in args:
                self.upstream = f"{args[2]}/{args[3]}"
            self.pushes += 1
            return ""

        if cmd == "pull":
            self.rebases += 1
            if self.rebase_failures:
                self._fail(repo, args, self.rebase_failures.pop(0))
            return ""

        raise AssertionError(f"Unexpected git command: {args}")


FETCH_FIRST_OUTPUT = (
    "To github.com:me/dotfiles.git\n"
    " ! [rejected]        main -> main (fetch first)\n"
    "error: failed to push some refs to 'github.com:me/dotfiles.git'"
)


@pytest.fixture
def fake_git(mocker: MagicMock) -> FakeGit:
    """Routes every `GitRepo._run` call to a fresh FakeGit."""
    fake = FakeGit()
    mocker.patch.object(GitRepo, "_run", autospec=True, side_effect=fake)
    return fake


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory used as the ignore pattern base."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def config(home: Path) -> Config:
    """A default Config whose patterns are relative to the fake home."""
    conf = Config()
    conf.core.base_dir = str(home)
    return conf


@pytest.fixture(autouse=True)
def fixed_identity(mocker: MagicMock) -> None:
    """Pins host and user identity so generated text is deterministic."""
    for module in ("dotfile_manager.repository", "dotfile_manager.publish"):
        mocker.patch(f"{module}.get_host_name", return_value="testhost")
        mocker.patch(f"{module}.get_user_name", return_value="tester")
