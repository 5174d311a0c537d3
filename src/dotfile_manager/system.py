import getpass
import logging
import socket
import subprocess
import sys

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

# Title and message are passed as script arguments, never spliced into source.
_APPLESCRIPT = (
    "on run argv",
    "display notification (item 2 of argv) with title (item 1 of argv)",
    "end run",
)


class SystemStrategy:
    """Platform hooks used by the reconciliation engine.

    Only notifications vary by platform. They are fire-and-forget: a missing
    or failing notifier is logged at debug level and never raised.
    """

    def command(self, title: str, message: str) -> list[str] | None:
        """Builds the notifier invocation, or None where there is no notifier."""
        return None

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification.

        Args:
            title (str): The notification title.
            message (str): The notification body text.
        """
        cmd = self.command(title, message)
        if cmd is None:
            return
        try:
            subprocess.run(cmd, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Notification failed: {e}")


class MacOSStrategy(SystemStrategy):
    """Notifications through Notification Center (`osascript`)."""

    def command(self, title: str, message: str) -> list[str]:
        cmd = ["osascript"]
        for line in _APPLESCRIPT:
            cmd += ["-e", line]
        return [*cmd, title, message]


class LinuxStrategy(SystemStrategy):
    """Notifications through the freedesktop notification daemon."""

    def command(self, title: str, message: str) -> list[str]:
        return ["notify-send", "--app-name", APP_NAME, title, message]


def get_system() -> SystemStrategy:
    """Returns the notification strategy for the running platform."""
    if sys.platform == "darwin":
        return MacOSStrategy()
    if sys.platform.startswith("linux"):
        return LinuxStrategy()
    return SystemStrategy()


def get_host_name() -> str:
    """Returns a human-readable name for this machine.

    On macOS the user-facing ComputerName is preferred; everywhere else (and
    as a fallback) the short hostname is used.
    """
    if sys.platform == "darwin":
        try:
            res = subprocess.run(
                ["scutil", "--get", "ComputerName"],
                capture_output=True,
                text=True,
                timeout=1,
            )
            name = res.stdout.strip() if res.returncode == 0 else ""
            if name:
                return name
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"scutil failed: {e}")

    return socket.gethostname().split(".")[0]


def get_user_name() -> str:
    """Returns the login name of the operator running the pass."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
