import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import daemon, service
from .config import Config
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE, PID_FILE
from .errors import DotfileError
from .patterns import normalize_patterns
from .repository import RepositoryManager, refresh_ignore_file
from .settings import SettingsStore

logger = logging.getLogger(APP_NAME)
console = Console()

# Every key is commented out, so the seeded file loads as the defaults.
CONFIG_TEMPLATE = """\
# dotfile-manager tuning. Tracked paths live in settings.json (see `dotfile-manager list`).

[daemon]
# interval = "1hr"

[files]
# delete_extraneous = true
# match_mode = "substring"

[commit]
# message_mode = "summary"
"""


def _abspath(path: str) -> str:
    """Expands '~' and makes a path absolute without resolving symlinks."""
    return os.path.abspath(os.path.expanduser(path))


def _display(path: str) -> str:
    return path.replace(str(Path.home()), "~", 1)


def show_status(store: SettingsStore | None = None) -> None:
    """Displays the scheduler state and the freshly probed repository state."""
    store = store or SettingsStore()
    settings = store.settings
    conf = Config.load()

    running = False
    if PID_FILE.exists():
        try:
            running = daemon._pid_alive(int(PID_FILE.read_text().strip()))
        except (OSError, ValueError):
            running = False

    if running:
        status_text, status_style = "Active (Running)", "bold green"
    elif service.is_service_enabled():
        status_text, status_style = "Active (Idle)", "green"
    else:
        status_text, status_style = "Stopped", "bold red"

    system_content = Text()
    system_content.append("Service:  ", style="bold")
    system_content.append(status_text + "\n", style=status_style)
    system_content.append("Interval: ", style="bold")
    system_content.append(f"{conf.daemon.interval}s")
    console.print(Panel(system_content, title="System Status", expand=False))

    repo_content = Text()
    repo_content.append("Repository: ", style="bold")
    repo_content.append(f"{settings.repo_path or 'not set'}\n")
    repo_content.append("Remote:     ", style="bold")
    repo_content.append(f"{settings.remote_url or 'not set'}\n")

    if settings.repo_path:
        manager = RepositoryManager(
            Path(settings.repo_path).expanduser(), settings.remote_url, conf
        )
        try:
            state = manager.probe()
            pending = (
                len(manager.repo.status_porcelain()) if state.has_commits else 0
            )
        except DotfileError as e:
            logger.debug(f"Failed to probe repository: {e}")
            repo_content.append(f"\nUnable to read repository: {e}", style="red")
        else:
            repo_content.append(f"Initialized: {'yes' if state.is_repo else 'no'}\n")
            repo_content.append(f"Commits:     {'yes' if state.has_commits else 'none'}\n")
            repo_content.append(f"Branch:      {state.branch or '-'}\n")
            repo_content.append(f"Tracking:    {state.upstream or 'not set'}\n")
            repo_content.append(f"Pending:     {pending} files changed")

    console.print(Panel(repo_content, title="Repository Status", expand=False))


def list_tracked(store: SettingsStore | None = None) -> None:
    """Lists tracked directories, files and ignore patterns."""
    settings = (store or SettingsStore()).settings

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Kind", style="cyan")
    table.add_column("Entry")
    table.add_column("Present", justify="right", style="dim")

    for path in settings.dotfile_paths:
        exists = Path(path).expanduser().is_dir()
        table.add_row("directory", _display(path), "yes" if exists else "[red]missing[/red]")
    for path in settings.dotfiles:
        exists = Path(path).expanduser().exists()
        table.add_row("file", _display(path), "yes" if exists else "[red]missing[/red]")
    for pattern in settings.ignore_patterns:
        table.add_row("ignore", pattern, "-")

    console.print(table)


def _refresh_ignores(store: SettingsStore) -> None:
    repo_path = store.settings.repo_path
    if not repo_path or not Path(repo_path).expanduser().is_dir():
        return
    base_dir = Path(Config.load().core.base_dir).expanduser()
    patterns = normalize_patterns(store.settings.ignore_patterns, base_dir)
    try:
        refresh_ignore_file(Path(repo_path).expanduser(), list(patterns))
    except OSError as e:
        console.print(f"[bold yellow]WARNING:[/bold yellow] Could not update .gitignore: {e}")


def change_setting(command: str, value: str, store: SettingsStore | None = None) -> None:
    """Applies one settings mutation and reports the outcome.

    Args:
        command (str): The CLI subcommand (e.g., 'add-file').
        value (str): The path, URL or pattern argument.
        store (SettingsStore | None, optional): The settings store.
    """
    store = store or SettingsStore()

    if command == "set-repo":
        store.set_repo(_abspath(value))
        console.print(f"[bold green]SUCCESS:[/bold green] Repository set to {_abspath(value)}.")
        return
    if command == "set-remote":
        store.set_remote(value)
        console.print(f"[bold green]SUCCESS:[/bold green] Remote set to {value}.")
        return

    actions = {
        "add-path": (store.add_dotfile_path, True, "Tracking directory"),
        "remove-path": (store.remove_dotfile_path, True, "Stopped tracking directory"),
        "add-file": (store.add_dotfile, True, "Tracking file"),
        "remove-file": (store.remove_dotfile, True, "Stopped tracking file"),
        "ignore": (store.add_ignore_pattern, False, "Ignoring"),
        "unignore": (store.remove_ignore_pattern, False, "No longer ignoring"),
    }
    action, is_path, verb = actions[command]
    entry = _abspath(value) if is_path else value

    if action(entry):
        console.print(f"[bold green]SUCCESS:[/bold green] {verb} '{entry}'.")
    else:
        console.print(f"[blue]INFO:[/blue] Nothing to do for '{entry}'.")

    if command in ("ignore", "unignore"):
        _refresh_ignores(store)


def open_config() -> None:
    """Opens config.toml in $EDITOR, seeding a commented template on first use."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(CONFIG_TEMPLATE)

    editor = os.environ.get("EDITOR") or ("open" if sys.platform == "darwin" else "nano")
    console.print(f"Editing [cyan]{CONFIG_FILE}[/cyan] with {editor}")
    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except OSError as e:
        console.print(f"[bold red]ERROR:[/bold red] Cannot launch '{editor}': {e}")


CONFIG_REFERENCE = (
    ("core", "primary_branch", '"main"', "Branch the repository is normalized to."),
    ("", "remote_name", '"origin"', "Remote that changes are pushed to."),
    ("", "base_dir", "home", "Directory ignore patterns are relative to."),
    ("daemon", "interval", '"1hr"', "Time between passes (e.g., '30m', 3600)."),
    ("limits", "max_log_size", '"5mb"', "Log size before rotation."),
    ("files", "delete_extraneous", "true", "Propagate deletions into the repository."),
    ("", "match_mode", '"substring"', "'substring' or strict 'gitignore' matching."),
    ("", "manage_gitignore", "true", "Merge ignore patterns into .gitignore."),
    ("commit", "message_mode", '"summary"', "'summary' or 'files' (list changed paths)."),
    ("", "prefix", '"Configuration changes committed"', "Commit message prefix."),
    ("signatures", "fetch_first", '"fetch first"', "Output marking a rejected push."),
    ("", "no_commits", "\"ambiguous argument 'HEAD'\"", "Output marking an empty repo."),
    ("", "no_remote", "\"No such remote 'origin'\"", "Output marking a missing remote."),
    ("", "nothing_to_commit", '"nothing to commit"', "Output marking a clean tree."),
)


def show_config_reference() -> None:
    """Prints every config.toml key with its default."""
    table = Table(title="config.toml keys", show_lines=True)
    for header, style in (("Section", "cyan"), ("Key", "green"), ("Default", "yellow")):
        table.add_column(header, style=style)
    table.add_column("Description")

    for row in CONFIG_REFERENCE:
        table.add_row(*row)
    console.print(table)


def tail_log(lines: int = 200) -> None:
    """Streams the reconciliation log until interrupted.

    Args:
        lines (int, optional): How much history to print before following.
    """
    if not LOG_FILE.exists():
        console.print(
            f"[yellow]No passes have been logged yet ({_display(str(LOG_FILE))}).[/yellow]"
        )
        return

    console.print(f"Following [bold cyan]{_display(str(LOG_FILE))}[/bold cyan], Ctrl+C exits.")
    try:
        subprocess.run(["tail", "-n", str(lines), "-F", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dotfile-manager",
        description="Mirror dotfiles into a git repository and keep it pushed.",
    )
    subparsers = parser.add_subparsers(dest="command")

    now_parser = subparsers.add_parser("now", help="Run a reconciliation pass immediately")
    now_parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")

    subparsers.add_parser("status", help="Show service and repository status")
    subparsers.add_parser("list", help="List tracked paths, files and ignore patterns")

    for name, metavar, help_text in (
        ("set-repo", "path", "Set the local repository path"),
        ("set-remote", "url", "Set the remote origin URL"),
        ("add-path", "path", "Track a directory"),
        ("remove-path", "path", "Stop tracking a directory"),
        ("add-file", "path", "Track an individual file"),
        ("remove-file", "path", "Stop tracking an individual file"),
        ("ignore", "pattern", "Add an ignore pattern (e.g. '*.log')"),
        ("unignore", "pattern", "Remove an ignore pattern"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("value", metavar=metavar)

    install_parser = subparsers.add_parser(
        "install-service", help="Install the scheduled background service"
    )
    install_parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between passes (default: [daemon].interval, 3600)",
    )
    subparsers.add_parser("uninstall-service", help="Uninstall the background service")
    subparsers.add_parser("log", help="Tail the daemon log file")

    config_parser = subparsers.add_parser("config", help="Open the config file or view options")
    config_parser.add_argument(
        "--list", "-l", action="store_true", help="List all configuration options"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Dotfile Manager CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "now":
        daemon.main(interactive=True, verbose=args.verbose)
    elif args.command == "status":
        show_status()
    elif args.command == "list":
        list_tracked()
    elif args.command == "install-service":
        interval = args.interval or Config.load().daemon.interval
        service.install(interval=interval)
    elif args.command == "uninstall-service":
        with console.status("Uninstalling service...", spinner="dots"):
            service.uninstall()
    elif args.command == "log":
        tail_log()
    elif args.command == "config":
        if args.list:
            show_config_reference()
        else:
            open_config()
    elif args.command:
        try:
            change_setting(args.command, args.value)
        except OSError as e:
            console.print(f"[bold red]ERROR:[/bold red] Could not save settings: {e}")
            sys.exit(1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
