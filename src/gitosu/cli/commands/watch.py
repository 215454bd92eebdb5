"""CLI command for gitosu watch - import map exports as they appear."""

from __future__ import annotations

import signal
import sys
import time
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from watchdog.observers import Observer

from gitosu.cli.utils.directories import require_directory
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.cli.utils.file_watcher import ArchiveFileHandler
from gitosu.config import GitOsuSettings, get_logger, get_settings
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import SyncEngine

logger = get_logger(__name__)
console = Console()

# Global observer for signal handling
_observer: Any = None
_handler: Any = None

STATUS_ICONS = {
    "processing": "🔄 Importing",
    "committed": "✅ Committed",
    "unchanged": "➖ No changes",
    "error": "❌ Error",
}


def signal_handler(_signum: int, _frame: Any) -> None:
    """Handle shutdown signals gracefully.

    Args:
        _signum: Signal number (unused)
        _frame: Current stack frame (unused)
    """
    console.print("\n[yellow]Shutting down gracefully...[/yellow]")
    if _observer and _observer.is_alive():
        _observer.stop()
    if _handler:
        _handler.stop_processing(timeout=5.0)
    sys.exit(0)


def _status_panel(rows: list[str]) -> Panel:
    table = Table(title="Export Watch Status", show_header=False)
    table.add_column("Status")
    for row in rows:
        table.add_row(row)
    return Panel(table, title="[bold cyan]gitosu[/bold cyan]", border_style="cyan")


def run_watch(
    settings: GitOsuSettings,
    scan_existing: bool = False,
    timeout: int = 0,
) -> None:
    """Watch the exports directory until interrupted or the timeout expires.

    Raises:
        ConfigurationError: If the exports or repositories directory is missing
    """
    global _observer, _handler

    exports_dir = require_directory(settings.exports_dir, "Exports", "--exports")
    require_directory(settings.repositories_dir, "Repositories", "--repositories")

    status_log: list[str] = []

    def update_status(status: str, path: Path, error: str | None = None) -> None:
        timestamp = time.strftime("%H:%M:%S")
        entry = f"[{timestamp}] {STATUS_ICONS.get(status, status)}: {path.name}"
        if status == "error":
            entry += f" - {str(error)[:100] if error else 'Unknown error'}"
        elif status == "committed":
            entry += " [dim](don't forget to push!)[/dim]"
        status_log.append(entry)
        # Keep only last 10 entries
        if len(status_log) > 10:
            status_log.pop(0)
        console.print(_status_panel(status_log))

    engine = SyncEngine.from_settings(settings)
    _handler = ArchiveFileHandler(engine, settings, callback=update_status)
    _handler.start_processing()

    if scan_existing:
        queued = _handler.scan_existing(exports_dir)
        logger.info("Queued existing archives", count=queued)

    _observer = Observer()
    _observer.schedule(_handler, str(exports_dir), recursive=False)
    _observer.start()
    logger.info(
        "Watching for exports",
        exports_dir=str(exports_dir),
        repositories_dir=str(settings.repositories_dir),
    )

    console.print(
        _status_panel(
            [
                f"👀 Watching: {exports_dir}",
                f"📁 Repositories: {settings.repositories_dir}",
                f"📦 Keep latest archive: {'Yes' if settings.keep_latest_archive else 'No'}",
                f"⏱️ Timeout: {timeout}s" if timeout > 0 else "⏱️ Timeout: None",
                "",
                "[dim]Waiting for exports... Press Ctrl+C to stop[/dim]",
            ]
        )
    )

    start_time = time.monotonic()
    try:
        while _observer.is_alive():
            time.sleep(1)
            if timeout > 0 and (time.monotonic() - start_time) >= timeout:
                console.print(f"\n[yellow]Watch timeout reached ({timeout}s)[/yellow]")
                break
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping watch...[/yellow]")
    finally:
        _observer.stop()
        _handler.stop_processing(timeout=5.0)
        _observer.join(timeout=10.0)

    console.print("[green]✓ Watch stopped[/green]")


def watch_command(
    ctx: typer.Context,
    scan_existing: Annotated[
        bool,
        typer.Option(
            "--scan-existing",
            help="Import archives already present in the exports directory",
        ),
    ] = False,
    timeout: Annotated[
        int,
        typer.Option(
            "--timeout",
            "-t",
            help="Maximum watch duration in seconds (0 for unlimited)",
        ),
    ] = 0,
) -> None:
    """Watch the exports directory and commit every new export.

    Each exported archive is unpacked into the repository of its map and
    committed when its contents changed. Press Ctrl+C to stop watching.
    """
    signal.signal(signal.SIGTERM, signal_handler)
    try:
        run_watch(get_settings(), scan_existing=scan_existing, timeout=timeout)
    except GitOsuError as e:
        handle_cli_error(e, verbose=bool(ctx.obj and ctx.obj.get("verbose")))
