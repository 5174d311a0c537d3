"""Installation of the scheduled background pass (systemd timer / launchd agent)."""

import plistlib
import shutil
import subprocess
import sys
from pathlib import Path

from rich.console import Console

from .constants import APP_LABEL, LOG_FILE

console = Console()

DAEMON_COMMAND = "dotfile-manager-daemon"


def get_executable() -> str:
    """Resolves the absolute path of the scheduled entry point.

    Raises:
        SystemExit: If `dotfile-manager-daemon` is not on PATH.
    """
    exe = shutil.which(DAEMON_COMMAND)
    if exe:
        return exe
    console.print(
        f"[bold red]ERROR:[/bold red] '{DAEMON_COMMAND}' is not on PATH. "
        "Reinstall dotfile-manager and try again."
    )
    sys.exit(1)


def get_paths() -> tuple[Path, Path]:
    """Returns (unit definition path, log file path) for this platform.

    Raises:
        NotImplementedError: On platforms without a supported scheduler.
    """
    if sys.platform == "darwin":
        unit = Path.home() / "Library/LaunchAgents" / f"{APP_LABEL}.plist"
    elif sys.platform.startswith("linux"):
        unit = Path.home() / ".config/systemd/user" / f"{APP_LABEL}.service"
    else:
        raise NotImplementedError(f"No background scheduler support for {sys.platform}.")
    return unit, LOG_FILE


def _systemctl(*args: str, check: bool = True) -> None:
    subprocess.run(["systemctl", "--user", *args], check=check)


def _systemd_units(executable: str, interval: int) -> dict[str, str]:
    return {
        "service": (
            "[Unit]\n"
            "Description=Dotfile Manager reconciliation pass\n\n"
            "[Service]\n"
            "Type=oneshot\n"
            f"ExecStart={executable}\n"
        ),
        "timer": (
            "[Unit]\n"
            f"Description=Reconcile dotfiles every {interval} seconds\n\n"
            "[Timer]\n"
            "OnBootSec=5min\n"
            f"OnUnitActiveSec={interval}s\n"
            f"Unit={APP_LABEL}.service\n\n"
            "[Install]\n"
            "WantedBy=timers.target\n"
        ),
    }


def install_linux(unit_path: Path, log_path: Path, executable: str, interval: int) -> None:
    """Writes a one-shot service plus the timer that triggers it, then enables the timer.

    Args:
        unit_path (Path): Where the .service unit goes; the .timer sits beside it.
        log_path (Path): The daemon log, shown to the operator.
        executable (str): The scheduled entry point.
        interval (int): Seconds between passes.
    """
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    for suffix, content in _systemd_units(executable, interval).items():
        (unit_path.parent / f"{APP_LABEL}.{suffix}").write_text(content)

    _systemctl("daemon-reload")
    _systemctl("enable", "--now", f"{APP_LABEL}.timer")
    console.print(
        "[bold green]SUCCESS:[/bold green] Timer enabled.\n"
        f"Inspect with: systemctl --user list-timers {APP_LABEL}.timer\n"
        f"Log file: {log_path}"
    )


def install_macos(plist_path: Path, log_path: Path, executable: str, interval: int) -> None:
    """Writes and (re)loads a launchd agent that runs a pass every `interval` seconds.

    Args:
        plist_path (Path): The agent definition path.
        log_path (Path): The daemon log; launchd's own stderr goes beside it.
        executable (str): The scheduled entry point.
        interval (int): Seconds between passes.
    """
    plist_path.parent.mkdir(parents=True, exist_ok=True)
    with open(plist_path, "wb") as f:
        plistlib.dump(
            {
                "Label": APP_LABEL,
                "ProgramArguments": [executable],
                "StartInterval": interval,
                "RunAtLoad": True,
                "StandardErrorPath": str(log_path.with_suffix(".err")),
            },
            f,
        )

    subprocess.run(["launchctl", "unload", str(plist_path)], stderr=subprocess.DEVNULL)
    subprocess.run(["launchctl", "load", str(plist_path)], check=True)
    console.print(f"[bold green]SUCCESS:[/bold green] launchd agent loaded.\nLog file: {log_path}")


def install(interval: int) -> None:
    """Installs the scheduler for the current platform.

    Args:
        interval (int): Seconds between passes.
    """
    unit, log = get_paths()
    exe = get_executable()

    console.print(f"Scheduling a reconciliation pass every {interval}s...")
    installer = install_macos if sys.platform == "darwin" else install_linux
    installer(unit, log, exe, interval)


def uninstall() -> None:
    """Stops the scheduler and deletes its unit definitions."""
    unit, _ = get_paths()
    if sys.platform == "darwin":
        subprocess.run(["launchctl", "unload", str(unit)], stderr=subprocess.DEVNULL)
        unit.unlink(missing_ok=True)
    else:
        timer = unit.with_suffix(".timer")
        subprocess.run(
            ["systemctl", "--user", "disable", "--now", timer.name],
            stderr=subprocess.DEVNULL,
        )
        unit.unlink(missing_ok=True)
        timer.unlink(missing_ok=True)
        _systemctl("daemon-reload", check=False)

    console.print("[bold green]SUCCESS:[/bold green] Background service removed.")


def is_service_enabled() -> bool:
    """Checks whether a scheduler definition is installed."""
    try:
        unit, _ = get_paths()
    except NotImplementedError:
        return False
    if sys.platform == "darwin":
        return unit.exists()
    return unit.with_suffix(".timer").exists()
