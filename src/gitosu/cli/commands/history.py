"""CLI command for listing the snapshots of a map."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.config import get_settings
from gitosu.exceptions import GitOsuError
from gitosu.synchronizer import RepositoryStore

console = Console()


def history_command(
    ctx: typer.Context,
    repository: Annotated[
        Path | None,
        typer.Option(
            "--repository",
            "-C",
            help="Map repository to inspect (default: current directory)",
        ),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Maximum number of snapshots", min=1),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List the snapshots of a map repository, newest first."""
    settings = get_settings()

    try:
        store = RepositoryStore(settings.repositories_dir, settings)
        map_repo = store.open_path(repository or Path.cwd())
        snapshots = map_repo.history(limit)
    except GitOsuError as e:
        handle_cli_error(
            e, verbose=bool(ctx.obj and ctx.obj.get("verbose")), json_output=json_output
        )
        return

    if json_output:
        typer.echo(
            JsonFormatter().format(
                {"identity": map_repo.identity, "snapshots": snapshots}
            )
        )
        return

    table = Table(title=f"Snapshots of {map_repo.identity}")
    table.add_column("Commit", style="bold")
    table.add_column("Date")
    table.add_column("Author")
    table.add_column("Message")
    for snapshot in snapshots:
        table.add_row(
            snapshot.short_sha,
            snapshot.timestamp.strftime("%Y-%m-%d %H:%M"),
            snapshot.author,
            snapshot.message,
        )
    console.print(table)
