"""Main entry point for disk-reclaim."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections import Counter
from pathlib import Path

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from .config import ReclaimConfig
from .models import Categories, CleanupProgress, ScanResult
from .reclaimer import DiskReclaimer


def _format_size(size_bytes: int) -> str:
    """Human-readable byte count."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def _category_name(category_id: str) -> str:
    category = Categories.get(category_id)
    return category.name if category else category_id


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="disk-reclaim",
        description="Reclaim disk space from temp files, caches, crash reports and the trash",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Scan without deleting anything")
    scan_parser.add_argument(
        "--details",
        action="store_true",
        help="List every finding instead of per-category totals",
    )

    clean_parser = subparsers.add_parser("clean", help="Scan and clean")
    clean_parser.add_argument(
        "--all",
        action="store_true",
        dest="all_categories",
        help="Clean every category, not only the enabled ones",
    )
    clean_parser.add_argument(
        "--category",
        action="append",
        default=None,
        metavar="ID",
        help="Clean only this category (repeatable)",
    )
    clean_parser.add_argument(
        "--permanent",
        action="store_true",
        help="Delete permanently instead of moving to the trash",
    )

    subparsers.add_parser("trash", help="Show trash usage")

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


def _print_warnings(console: Console, warnings: tuple[str, ...]) -> None:
    for warning in warnings:
        console.print(f"[yellow]! {warning}[/yellow]")


def _print_scan(console: Console, result: ScanResult, details: bool) -> None:
    if details:
        table = Table(title=f"Found {len(result.findings)} items")
        table.add_column("Category", style="cyan")
        table.add_column("Path", style="dim")
        table.add_column("Size", justify="right", style="green")
        table.add_column("Reason")
        for finding in result.findings:
            table.add_row(
                _category_name(finding.category_id),
                finding.path or "",
                _format_size(finding.size_bytes),
                finding.reason,
            )
        console.print(table)

    table = Table(title="Reclaimable space by category")
    table.add_column("Category", style="cyan")
    table.add_column("Size", justify="right", style="green")
    for category_id, size in result.total_bytes_by_category.items():
        table.add_row(_category_name(category_id), _format_size(size))
    table.add_row("[bold]Total[/bold]", f"[bold]{_format_size(result.total_bytes)}[/bold]")
    console.print(table)


def cmd_scan(config: ReclaimConfig, args: argparse.Namespace) -> int:
    """Execute scan command.

    Args:
        config: Reclaim configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    reclaimer = DiskReclaimer(config)
    result = asyncio.run(reclaimer.scan())

    if not result.findings:
        console.print("[green]Nothing to reclaim[/green]")
    else:
        _print_scan(console, result, args.details)

    _print_warnings(console, reclaimer.policy.warnings)
    return 0


def cmd_clean(config: ReclaimConfig, args: argparse.Namespace) -> int:
    """Execute clean command.

    Args:
        config: Reclaim configuration.
        args: Parsed arguments.

    Returns:
        Exit code: 0 on completion, 130 when cancelled.

    """
    console = Console()

    if args.category:
        unknown = [c for c in args.category if Categories.get(c) is None]
        if unknown:
            console.print(f"[red]Unknown categories: {', '.join(unknown)}[/red]")
            return 1
        categories = list(args.category)
    elif args.all_categories:
        categories = [category.id for category in Categories.ALL]
    else:
        categories = list(config.enabled_categories)

    if args.all_categories or args.category:
        # Explicitly requested categories must also be scanned.
        config.enabled_categories = categories

    reclaimer = DiskReclaimer(config)

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Cleaning", total=None)

        def on_progress(snapshot: CleanupProgress) -> None:
            progress.update(task_id, total=snapshot.total, completed=snapshot.processed)

        run = asyncio.run(
            reclaimer.run_once(categories, permanent=args.permanent or None, progress=on_progress)
        )

    _print_warnings(console, reclaimer.policy.warnings)

    if not run.outcomes:
        console.print("[green]Nothing to clean[/green]")
        return 130 if run.cancelled else 0

    table = Table(title="Cleanup results")
    table.add_column("Outcome", style="cyan")
    table.add_column("Items", justify="right")
    for reason, count in sorted(Counter(o.reason_category.value for o in run.outcomes).items()):
        table.add_row(reason, str(count))
    console.print(table)

    console.print(f"[green]Reclaimed {_format_size(run.bytes_reclaimed)}[/green]")
    if run.cancelled:
        console.print(f"[yellow]Cancelled after {len(run.outcomes)} items[/yellow]")
        return 130
    return 0


def cmd_trash(config: ReclaimConfig, args: argparse.Namespace) -> int:
    """Execute trash command.

    Args:
        config: Reclaim configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    from .trash import default_trash

    console = Console()
    trash = default_trash()
    roots = trash.drive_roots()

    if not roots:
        console.print("[green]No trash found[/green]")
        return 0

    table = Table(title="Trash usage")
    table.add_column("Drive", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Size", justify="right", style="green")
    for root in roots:
        try:
            info = trash.query(root)
        except OSError as e:
            table.add_row(root, "-", f"[red]{e}[/red]")
            continue
        table.add_row(root, str(info.item_count), _format_size(info.size_bytes))

    console.print(table)
    return 0


def cmd_config(config: ReclaimConfig, args: argparse.Namespace) -> int:
    """Execute config command.

    Args:
        config: Reclaim configuration.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()
    config_path = args.config or ReclaimConfig.get_config_path()

    if args.init:
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

        table.add_row("Enabled categories", "\n".join(config.enabled_categories))
        table.add_row("Default minimum age", f"{config.default_min_age_hours}h")
        table.add_row(
            "Retention",
            "\n".join(f"{k}: {v}d" for k, v in config.retention_days.items()),
        )
        table.add_row("Recent file guard", f"{config.recent_file_guard_hours}h")
        table.add_row(
            "Compatibility guard",
            f"{config.compatibility_installer_guard_days}d" if config.compatibility_mode_enabled else "off",
        )
        table.add_row("Extra protected paths", "\n".join(config.protected_paths) or "-")
        table.add_row("Max workers", str(config.max_workers or "auto"))
        table.add_row("Permanent delete", str(config.permanent_delete))
        table.add_row("Log file", str(config.log_file))
        table.add_row("Log level", config.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init or --show[/yellow]")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    try:
        config = ReclaimConfig.load(args.config)
    except ValueError as e:
        Console(stderr=True).print(f"[red]{e}[/red]")
        return 2

    command = args.command or "scan"

    if command == "scan":
        if not hasattr(args, "details"):
            args.details = False
        return cmd_scan(config, args)
    elif command == "clean":
        return cmd_clean(config, args)
    elif command == "trash":
        return cmd_trash(config, args)
    elif command == "config":
        return cmd_config(config, args)
    else:
        print(f"Unknown command: {command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
