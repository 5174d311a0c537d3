"""Tests for the configuration management subsystem."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dotfile_manager.config import Config, parse_size, parse_time
from dotfile_manager.errors import Signature


def test_config_defaults() -> None:
    """Verifies that the configuration initializes with sensible defaults."""
    conf = Config()
    assert conf.core.primary_branch == "main"
    assert conf.core.remote_name == "origin"
    assert conf.core.base_dir == str(Path.home())
    assert conf.daemon.interval == 3600  # Default 1 hour
    assert conf.files.delete_extraneous is True
    assert conf.files.match_mode == "substring"
    assert conf.commit.message_mode == "summary"
    assert conf.signatures.as_mapping()[Signature.FETCH_FIRST] == "fetch first"


def test_config_load_missing_file(tmp_path: Path) -> None:
    assert Config.load(tmp_path / "absent.toml") == Config()


def test_config_load_reads_default_path(tmp_path: Path, mocker: MagicMock) -> None:
    """Verifies that `load()` without arguments reads the global CONFIG_FILE.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    config_path = tmp_path / "config.toml"
    config_path.write_text('[core]\nremote_name = "upstream"\n')
    mocker.patch("dotfile_manager.config.CONFIG_FILE", config_path)

    assert Config.load().core.remote_name == "upstream"


def test_config_load_merges_sections(tmp_path: Path) -> None:
    """Verifies every section is merged and human-readable values are parsed."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        '[core]\nprimary_branch = "trunk"\n'
        '[daemon]\ninterval = "30m"\n'
        '[limits]\nmax_log_size = "1mb"\n'
        '[files]\ndelete_extraneous = false\nmatch_mode = "gitignore"\n'
        '[commit]\nmessage_mode = "files"\nprefix = "Dotfiles synced"\n'
        '[signatures]\nfetch_first = "zuerst holen"\n'
    )

    conf = Config.load(config_path)

    assert conf.core.primary_branch == "trunk"
    assert conf.core.remote_name == "origin"  # Untouched default
    assert conf.daemon.interval == 1800
    assert conf.limits.max_log_size == 1024**2
    assert conf.files.delete_extraneous is False
    assert conf.files.match_mode == "gitignore"
    assert conf.commit.message_mode == "files"
    assert conf.commit.prefix == "Dotfiles synced"
    assert conf.signatures.as_mapping()[Signature.FETCH_FIRST] == "zuerst holen"
    assert conf.signatures.as_mapping()[Signature.NO_COMMITS] == "ambiguous argument 'HEAD'"


def test_parse_size() -> None:
    """Verifies that human-readable sizes are correctly converted to bytes."""
    assert parse_size(100) == 100
    assert parse_size("100kb") == 102400
    assert parse_size("10 MB") == 10485760
    assert parse_size("1.5gb") == int(1.5 * 1024**3)

    with pytest.raises(ValueError, match=r"Invalid size format '100 bits'"):
        parse_size("100 bits")


def test_parse_time() -> None:
    """Verifies that human-readable times are correctly converted to seconds."""
    assert parse_time(50) == 50
    assert parse_time("30s") == 30
    assert parse_time("10 min") == 600
    assert parse_time("2 hrs") == 7200
    assert parse_time("1.5h") == 5400

    with pytest.raises(ValueError, match=r"Invalid time format '10 lightyears'"):
        parse_time("10 lightyears")


def test_config_invalid_keys_and_values(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that unknown keys are ignored and invalid values fallback to defaults.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        caplog (pytest.LogCaptureFixture): Pytest fixture for capturing logs.
    """
    caplog.set_level(logging.WARNING)

    config_path = tmp_path / "config.toml"
    config_path.write_text(
        "[daemon]\n"
        'interval = "fast"\n'
        'fake_setting = "ignored"\n'
        "[limits]\n"
        'max_log_size = "10 gallons"\n'
        "[files]\n"
        'match_mode = "regex"\n'
        "[commit]\n"
        'message_mode = "poem"\n'
        "[presets]\n"
        'name = "lazy"\n'
    )

    conf = Config.load(config_path)

    # Assert fallbacks to defaults
    assert conf.daemon.interval == 3600
    assert conf.limits.max_log_size == 5242880
    assert conf.files.match_mode == "substring"
    assert conf.commit.message_mode == "summary"

    # Assert warnings were logged
    assert "Unknown config keys in [daemon]: fake_setting" in caplog.text
    assert "Config error in [daemon].interval: Invalid time format" in caplog.text
    assert "Config error in [limits].max_log_size: Invalid size format" in caplog.text
    assert "Config error in [files].match_mode" in caplog.text
    assert "Config error in [commit].message_mode" in caplog.text
    assert "Unknown config sections: presets" in caplog.text


def test_config_syntax_error_keeps_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[daemon\ninterval = ")

    conf = Config.load(config_path)

    assert conf == Config()
    assert "Config syntax error" in caplog.text
