from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dotfile_manager.config import Config
from dotfile_manager.errors import ConfigurationError, PreconditionError, TransientConflictError
from dotfile_manager.reconcile import Reconciler
from dotfile_manager.settings import Settings

from conftest import FETCH_FIRST_OUTPUT, FakeGit

REMOTE = "git@example.com:me/dotfiles.git"


@pytest.fixture
def settings(home: Path, tmp_path: Path) -> Settings:
    """Tracks one directory and two files under the fake home."""
    (home / ".vimrc").write_text("set number\n")
    (home / ".config" / "nvim").mkdir(parents=True)
    (home / ".config" / "nvim" / "init.lua").write_text("-- nvim\n")
    (home / ".config" / "debug.log").write_text("noise\n")

    return Settings(
        repo_path=str(tmp_path / "dotfiles"),
        remote_url=REMOTE,
        dotfile_paths=[str(home / ".config")],
        dotfiles=[str(home / ".vimrc"), str(home / ".zshrc")],
        ignore_patterns=["*.log", ".ssh/*"],
    )


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock()


def test_first_pass_publishes_everything(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    """Verifies one pass takes an empty setup to a pushed mirror of the dotfiles."""
    result = Reconciler(settings, config, notifier).run_once()

    assert result.ok and result.published
    repo = Path(settings.repo_path)
    assert (repo / ".vimrc").read_text() == "set number\n"
    assert (repo / ".config" / "nvim" / "init.lua").exists()
    assert not (repo / ".config" / "debug.log").exists()
    assert (repo / ".gitignore").read_text() == "*.log\n.ssh/*\n"

    bootstrap, published = fake_git.commits
    assert bootstrap[0] == "Initial commit with README.md"
    assert published[0].startswith("Configuration changes committed for testhost by tester")
    assert set(published[1]) == {
        "README.md",
        ".gitignore",
        ".vimrc",
        ".config/nvim/init.lua",
    }
    assert fake_git.pushes == 2
    notifier.notify.assert_called_once_with(
        "Dotfile Manager", "Dotfiles updated and pushed to repo successfully."
    )


def test_unchanged_second_pass_is_noop(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    reconciler = Reconciler(settings, config, notifier)
    reconciler.run_once()
    fake_git.calls.clear()

    result = reconciler.run_once()

    assert result.ok and not result.published
    assert result.mirrored.changed == 0
    assert fake_git.count("commit") == 0
    assert fake_git.count("push") == 0
    assert fake_git.count("ls-remote") == 0


def test_deletions_propagate_to_repository(
    settings: Settings, config: Config, home: Path, notifier: MagicMock, fake_git: FakeGit
) -> None:
    reconciler = Reconciler(settings, config, notifier)
    reconciler.run_once()

    (home / ".vimrc").unlink()
    (home / ".config" / "nvim" / "init.lua").unlink()
    result = reconciler.run_once()

    assert result.published
    assert result.mirrored.removed == 2
    assert ".vimrc" not in fake_git.commits[-1][1]
    assert ".config/nvim/init.lua" not in fake_git.commits[-1][1]


def test_nested_repository_is_not_mirrored(
    settings: Settings, config: Config, home: Path, notifier: MagicMock, fake_git: FakeGit
) -> None:
    oh_my_zsh = home / ".oh-my-zsh"
    (oh_my_zsh / ".git").mkdir(parents=True)
    (oh_my_zsh / "oh-my-zsh.sh").write_text("# framework\n")
    settings.dotfile_paths.append(str(oh_my_zsh))

    Reconciler(settings, config, notifier).run_once()

    assert not (Path(settings.repo_path) / ".oh-my-zsh").exists()


def test_missing_repository_path_aborts(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    settings.repo_path = None

    result = Reconciler(settings, config, notifier).run_once()

    assert not result.ok
    assert isinstance(result.error, ConfigurationError)
    assert fake_git.calls == []
    title, message = notifier.notify.call_args.args
    assert title == "Dotfile Manager"
    assert "set-repo" in message


def test_missing_remote_aborts_before_mirroring(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    settings.remote_url = None

    result = Reconciler(settings, config, notifier).run_once()

    assert not result.ok
    assert isinstance(result.error, ConfigurationError)
    assert not (Path(settings.repo_path) / ".vimrc").exists()
    assert fake_git.count("commit") == 0


def test_unreachable_remote_aborts(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    fake_git.reachable = False

    result = Reconciler(settings, config, notifier).run_once()

    assert isinstance(result.error, PreconditionError)
    assert fake_git.pushes == 0
    notifier.notify.assert_called_once()


def test_rejected_push_is_recovered_once(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    reconciler = Reconciler(settings, config, notifier)
    reconciler.run_once()
    Path(settings.dotfiles[0]).write_text("set relativenumber\n")
    fake_git.push_failures.append(FETCH_FIRST_OUTPUT)

    result = reconciler.run_once()

    assert result.ok and result.published
    assert fake_git.rebases == 1


def test_repeated_rejection_fails_pass_and_notifies_once(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    reconciler = Reconciler(settings, config, notifier)
    reconciler.run_once()
    notifier.reset_mock()
    Path(settings.dotfiles[0]).write_text("set relativenumber\n")
    fake_git.push_failures.extend([FETCH_FIRST_OUTPUT, FETCH_FIRST_OUTPUT])

    result = reconciler.run_once()

    assert not result.ok
    assert isinstance(result.error, TransientConflictError)
    assert fake_git.rebases == 1
    notifier.notify.assert_called_once()


def test_mirror_failures_do_not_block_publish(
    settings: Settings, config: Config, home: Path, notifier: MagicMock, fake_git: FakeGit
) -> None:
    """Verifies a single unmirrorable entry still lets the rest be published."""
    (home / ".zshrc").mkdir()

    result = Reconciler(settings, config, notifier).run_once()

    assert result.ok and result.published
    assert len(result.mirrored.failed) == 1
    assert (Path(settings.repo_path) / ".vimrc").exists()


def test_ignore_file_not_managed_when_disabled(
    settings: Settings, config: Config, notifier: MagicMock, fake_git: FakeGit
) -> None:
    config.files.manage_gitignore = False

    Reconciler(settings, config, notifier).run_once()

    assert not (Path(settings.repo_path) / ".gitignore").exists()
