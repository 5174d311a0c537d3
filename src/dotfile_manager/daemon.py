import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler

from rich.console import Console

from .config import Config
from .constants import APP_NAME, LOG_FILE, PID_FILE
from .reconcile import CycleResult, Reconciler
from .settings import SettingsStore
from .system import get_system

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()


def setup_logging(interactive: bool, config: Config, verbose: bool = False) -> None:
    """Configures the logging subsystem.

    Handlers are only attached once per process, so repeated passes in the
    same interpreter do not duplicate log lines.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        config (Config): Supplies the log size limit.
        verbose (bool, optional): Whether to log at DEBUG level. Defaults to False.
    """
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if logger.handlers:
        return

    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to a stream (stderr is captured by systemd/launchd).
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        # In daemon mode, rotate logs to file.
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@contextmanager
def single_pass() -> Iterator[bool]:
    """Guards a pass against overlapping with another running pass.

    Yields:
        bool: True if this process holds the guard and may run, False if a
        live process already owns the PID file.
    """
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().strip())
        except (OSError, ValueError):
            pid = 0
        if pid and pid != os.getpid() and _pid_alive(pid):
            yield False
            return
        logger.debug("Removing stale PID file.")

    try:
        PID_FILE.write_text(str(os.getpid()))
    except OSError as e:
        logger.warning(f"Could not write PID file: {e}")

    try:
        yield True
    finally:
        PID_FILE.unlink(missing_ok=True)


def run_once(
    config: Config | None = None, store: SettingsStore | None = None
) -> CycleResult | None:
    """Runs a single reconciliation pass unless another pass is in progress.

    Args:
        config (Config | None, optional): Tuning configuration. Loaded from
            disk when omitted.
        store (SettingsStore | None, optional): The settings store. Loaded from
            disk when omitted.

    Returns:
        CycleResult | None: The pass outcome, or None if the pass was skipped.
    """
    config = config or Config.load()
    store = store or SettingsStore()

    with single_pass() as acquired:
        if not acquired:
            logger.info("SKIPPED: Another reconciliation pass is still running.")
            return None
        return Reconciler(store.settings, config, get_system()).run_once()


def main(interactive: bool = False, verbose: bool = False) -> None:
    """Entry point for scheduled (and manually triggered) passes.

    Args:
        interactive (bool, optional): Whether output goes to the console
            instead of the rotating log file. Defaults to False.
        verbose (bool, optional): Whether to log at DEBUG level. Defaults to False.
    """
    config = Config.load()
    setup_logging(interactive, config, verbose)

    if interactive:
        logger.info("Manual update triggered.")

    try:
        result = run_once(config)
    except Exception:
        # Scheduled runs log and exit cleanly; manual runs surface the traceback.
        logger.exception("LOOP ERROR: Reconciliation pass crashed")
        if not interactive:
            return
        raise

    if interactive and result is not None:
        if result.ok:
            state = "published" if result.published else "up to date"
            console.print(f"[bold green]SUCCESS:[/bold green] Dotfiles {state}.")
        else:
            console.print(f"[bold red]FAILED:[/bold red] {result.error}")


if __name__ == "__main__":
    main()
