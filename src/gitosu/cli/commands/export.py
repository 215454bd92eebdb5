"""CLI command for rebuilding an archive from a snapshot."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.config import get_settings
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import SyncEngine

console = Console()


def export_command(
    ctx: typer.Context,
    reference: Annotated[
        str | None,
        typer.Argument(help="Snapshot to export: sha, tag, branch, HEAD~1 (default: latest)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file or directory (default: current directory)",
        ),
    ] = None,
    repository: Annotated[
        Path | None,
        typer.Option(
            "--repository",
            "-C",
            help="Map repository to export from (default: current directory)",
        ),
    ] = None,
    map_name: Annotated[
        str | None,
        typer.Option(
            "--map",
            "-m",
            help="Map repository name below the repositories directory",
        ),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Rebuild an importable archive from a snapshot.

    Examples:
        gitosu export                      # Latest snapshot of the current repository
        gitosu export HEAD~2 -o old.osz    # An older snapshot
        gitosu export -m "Artist - Title (Mapper)" 1a2b3c4
    """
    settings = get_settings()
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))

    try:
        engine = SyncEngine.from_settings(settings)
        if map_name:
            result = engine.export_identity(map_name, reference, output)
        else:
            map_repo = engine.store.open_path(repository or Path.cwd())
            result = engine.export_snapshot(map_repo, reference, output)
    except GitOsuError as e:
        handle_cli_error(e, verbose=verbose, json_output=json_output)
        return

    if json_output:
        typer.echo(JsonFormatter().format(result))
        return

    console.print(
        f"[green]✓[/green] Exported [bold]{result.commit[:7]}[/bold] of "
        f"[cyan]{result.identity}[/cyan] to {result.output} "
        f"({result.file_count} files, {result.size} bytes)"
    )
