"""List command for gitosu CLI."""

from __future__ import annotations

from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.config import get_settings
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import RepositoryStore

console = Console()


def list_command(
    ctx: typer.Context,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List the map repositories in the repositories directory."""
    settings = get_settings()

    try:
        store = RepositoryStore(settings.repositories_dir, settings)
        rows: list[dict[str, Any]] = []
        for map_repo in store.list_repositories():
            latest = map_repo.history(limit=1)
            rows.append(
                {
                    "identity": map_repo.identity,
                    "path": str(map_repo.path),
                    "latest": latest[0].short_sha if latest else None,
                    "updated": latest[0].timestamp.isoformat() if latest else None,
                    "message": latest[0].message if latest else None,
                }
            )
    except GitOsuError as e:
        handle_cli_error(
            e, verbose=bool(ctx.obj and ctx.obj.get("verbose")), json_output=json_output
        )
        return

    if json_output:
        typer.echo(JsonFormatter().format(rows))
        return

    if not rows:
        console.print(
            f"[yellow]No map repositories found in {settings.repositories_dir}[/yellow]"
        )
        return

    table = Table(title=f"Maps in {settings.repositories_dir}")
    table.add_column("Map", style="cyan")
    table.add_column("Latest", style="bold")
    table.add_column("Updated")
    table.add_column("Message")
    for row in rows:
        table.add_row(
            row["identity"],
            row["latest"] or "-",
            (row["updated"] or "-")[:16].replace("T", " "),
            row["message"] or "",
        )
    console.print(table)
