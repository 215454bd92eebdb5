"""CLI command for importing a single exported archive."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.cli.utils.directories import require_directory
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.config import get_settings
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import SyncEngine

console = Console()


def import_command(
    ctx: typer.Context,
    archive: Annotated[
        Path,
        typer.Argument(help="Exported archive to import", dir_okay=False),
    ],
    use_repository: Annotated[
        str | None,
        typer.Option(
            "--use-repository",
            "-u",
            help="Import into this map repository instead of deriving it from the file name",
        ),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Import one exported archive without watching.

    Examples:
        gitosu import "Artist - Title (Mapper).osz"
        gitosu import export.osz --use-repository "Artist - Title (Mapper)"
    """
    settings = get_settings()
    verbose = bool(ctx.obj and ctx.obj.get("verbose"))

    try:
        require_directory(settings.repositories_dir, "Repositories", "--repositories")
        result = SyncEngine.from_settings(settings).import_file(
            archive, identity_override=use_repository
        )
    except GitOsuError as e:
        handle_cli_error(e, verbose=verbose, json_output=json_output)
        return

    if json_output:
        typer.echo(JsonFormatter().format(result))
        return

    if result.committed and result.commit:
        console.print(
            f"[green]✓[/green] Committed [bold]{result.commit[:7]}[/bold] to "
            f"[cyan]{result.identity}[/cyan] ({len(result.changed_paths)} files changed)"
        )
        console.print("[dim]Import completed! Don't forget to push![/dim]")
    else:
        console.print(
            f"[yellow]No changes:[/yellow] {archive.name} matches the latest "
            f"snapshot of [cyan]{result.identity}[/cyan]"
        )
