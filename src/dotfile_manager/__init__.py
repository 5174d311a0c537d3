"""Dotfile Manager: scheduled mirroring of dotfiles into a git repository.

This package provides the reconciliation engine (ignore matching, tree
mirroring, repository setup and publishing), the scheduled entry point, and
the command-line interface used to configure what is tracked.
"""

from . import (
    cli,
    config,
    constants,
    daemon,
    errors,
    git_wrapper,
    mirror,
    patterns,
    publish,
    reconcile,
    repository,
    service,
    settings,
    system,
)

__all__ = [
    "cli",
    "config",
    "constants",
    "daemon",
    "errors",
    "git_wrapper",
    "mirror",
    "patterns",
    "publish",
    "reconcile",
    "repository",
    "service",
    "settings",
    "system",
]
