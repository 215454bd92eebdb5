"""Configuration initialization command."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gitosu.config.template import (
    generate_config_template,
    get_default_config_path,
    write_config_template,
)

console = Console()


def config_init(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output path for config (default: ~/.config/gitosu/config.yaml)",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file"),
    ] = False,
    stdout: Annotated[
        bool,
        typer.Option("--stdout", help="Print the template instead of writing it"),
    ] = False,
) -> None:
    """Generate a commented configuration file.

    Examples:
        gitosu config init
        gitosu config init -o gitosu.yaml
        gitosu config init --stdout
    """
    if stdout:
        typer.echo(generate_config_template(), nl=False)
        return

    target = output or get_default_config_path()
    try:
        written = write_config_template(target, force=force)
    except FileExistsError as e:
        console.print(f"[red]✗ {e}[/red]")
        console.print("[yellow]→ Use --force to overwrite it[/yellow]")
        raise typer.Exit(1) from e
    except OSError as e:
        console.print(f"[red]✗ Cannot write configuration: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] Configuration written to {written}")
    console.print("[dim]Edit exports_dir and repositories_dir to get started[/dim]")
