"""Main entry point for the log directory cleaner."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cleaner import DirectoryCleaner, is_matching_log_file
from .config import CleanupConfig
from .scheduler import NEVER_CLEANED, CleanupScheduler


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="logdir-cleanup",
        description="Age and size based cleanup of rolling log directories",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command (default)
    run_parser = subparsers.add_parser("run", help="Run the daemon")
    run_parser.add_argument(
        "--once",
        action="store_true",
        help="Run one cleaning pass now and exit",
    )

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="List matching log files without deleting")
    scan_parser.add_argument(
        "--dir",
        "-d",
        type=Path,
        default=None,
        help="Directory to scan instead of base_path",
    )

    subparsers.add_parser("status", help="Show when the directory was last cleaned")

    # Config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--init",
        action="store_true",
        help="Create default configuration file",
    )
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )

    return parser.parse_args(argv)


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _format_time(value: datetime | None) -> str:
    if value is None or value == NEVER_CLEANED:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def cmd_scan(config: CleanupConfig, args: argparse.Namespace) -> int:
    """Execute scan command.

    Args:
        config: Cleanup configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    directory = args.dir or config.base_path

    if directory is None:
        console.print("[red]No directory given and base_path is not configured[/red]")
        return 1
    if not config.file_extension or not config.file_extension.strip():
        console.print("[yellow]file_extension is not configured; nothing would be cleaned[/yellow]")
        return 1

    cleaner = DirectoryCleaner()
    if not cleaner.gateway.exists_directory(directory):
        console.print(f"[red]Directory does not exist: {directory}[/red]")
        return 1

    try:
        found = cleaner.gateway.find_files(directory, lambda p: is_matching_log_file(p, config.file_extension))
    except OSError as e:
        console.print(f"[red]Error scanning {directory}: {escape(str(e))}[/red]")
        return 1

    if not found:
        console.print("[green]No matching log files found[/green]")
        return 0

    records = sorted(found.values(), key=lambda info: info.last_modified)
    total = sum(info.size for info in records)
    now = datetime.now(UTC)

    table = Table(title=f"Found {len(records)} log files ({_format_size(total)})")
    table.add_column("File", style="cyan")
    table.add_column("Age (days)", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Location", style="dim")

    for info in records:
        age_days = (now - info.last_modified).total_seconds() / 86400
        table.add_row(
            info.path.name,
            f"{age_days:.2f}",
            _format_size(info.size),
            str(info.path.parent),
        )

    console.print(table)
    return 0


def cmd_status(config: CleanupConfig, args: argparse.Namespace) -> int:
    """Execute status command.

    Args:
        config: Cleanup configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    scheduler = CleanupScheduler.from_config(config)

    if scheduler.base_path is None:
        console.print("[red]base_path is not configured[/red]")
        return 1

    now = scheduler.clock.now()
    last = scheduler.cleaner.get_last_cleaning_time(scheduler.base_path)
    due = scheduler.is_due_for_cleaning(now)

    table = Table(title="Cleaning status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Directory", str(scheduler.base_path))
    table.add_row("Enabled", str(scheduler.is_enabled))
    table.add_row("Last cleaned", _format_time(last))
    table.add_row("Next due", _format_time(scheduler.next_cleaning_time()) if last else "now")
    table.add_row("Due now", str(due))

    console.print(table)
    return 0


def cmd_config(config: CleanupConfig, args: argparse.Namespace) -> int:
    """Execute config command.

    Args:
        config: Cleanup configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    if args.init:
        config_path = args.config or CleanupConfig.get_config_path()
        if config_path.exists():
            console.print(f"[yellow]Config already exists: {config_path}[/yellow]")
            return 1
        config.save(config_path)
        console.print(f"[green]Created config: {config_path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Base path", str(config.base_path) if config.base_path else "-")
        table.add_row("File extension", config.file_extension or "-")
        table.add_row("Max age (days)", config.max_age_days or "-")
        table.add_row("Max directory size", config.max_directory_size or "-")
        table.add_row("Period", f"{config.period_minutes:g} min")
        table.add_row("Wait policy", config.wait_policy.value)
        table.add_row("Log file", str(config.log_file))
        table.add_row("Log level", config.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def cmd_run(config: CleanupConfig, args: argparse.Namespace) -> int:
    """Execute run command.

    Args:
        config: Cleanup configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    from .daemon import CleanupDaemon

    try:
        daemon = CleanupDaemon(config)
    except ValueError as e:
        Console(stderr=True).print(f"[red]{escape(str(e))}[/red]")
        return 1

    if getattr(args, "once", False):
        result = asyncio.run(daemon.run_once())
        print(f"Matched {result.matched} files, deleted {len(result.deleted)}, failed {len(result.failed)}")
        return 0

    asyncio.run(daemon.run_daemon())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    try:
        config = CleanupConfig.load(args.config)
    except ValueError as e:
        Console(stderr=True).print(f"[red]{escape(str(e))}[/red]")
        return 1

    # Default to run command
    command = args.command or "run"

    if command == "scan":
        return cmd_scan(config, args)
    elif command == "status":
        return cmd_status(config, args)
    elif command == "config":
        return cmd_config(config, args)
    elif command == "run":
        return cmd_run(config, args)
    else:
        print(f"Unknown command: {command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
