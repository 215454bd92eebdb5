"""Main CLI entry point."""

from __future__ import annotations

import signal
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console

from gitosu import __version__
from gitosu.cli.commands import (
    export_command,
    history_command,
    import_command,
    list_command,
    watch_command,
)
from gitosu.cli.commands.config import config_app
from gitosu.cli.commands.watch import run_watch, signal_handler
from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.cli.utils.error_handler import handle_cli_error
from gitosu.config import (
    configure_logging,
    get_logger,
    get_settings_for_cli,
    set_settings,
)
from gitosu.exceptions import ConfigurationError, GitOsuError

logger = get_logger(__name__)
console = Console()

app = typer.Typer(
    name="gitosu",
    help="Track osu! beatmap exports as git history",
    pretty_exceptions_enable=False,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command(name="watch")(watch_command)
app.command(name="import")(import_command)
app.command(name="export")(export_command)
app.command(name="history")(history_command)
app.command(name="list")(list_command)
app.command(name="ls")(list_command)  # Alias for list command

app.add_typer(config_app, name="config")


@app.command()
def version(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Show gitosu version."""
    version_info = {
        "name": "gitosu",
        "version": __version__,
        "description": "Track osu! beatmap exports as git history",
    }

    if json_output:
        typer.echo(JsonFormatter().format(version_info))
    else:
        console.print(f"gitosu v{version_info['version']}")


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    exports: Annotated[
        Path | None,
        typer.Option(
            "--exports",
            "-e",
            help="Directory osu! writes exported .osz files to",
            file_okay=False,
        ),
    ] = None,
    repositories: Annotated[
        Path | None,
        typer.Option(
            "--repositories",
            "-r",
            help="Directory holding one git repository per map",
            file_okay=False,
        ),
    ] = None,
    keep_latest_osz: Annotated[
        bool,
        typer.Option(
            "--keep-latest-osz",
            "-k",
            help="Also commit the latest .osz file (at least doubles repository size)",
        ),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (YAML, TOML, or JSON)",
            envvar="GITOSU_CONFIG",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging (INFO level)"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging", envvar="GITOSU_DEBUG"),
    ] = False,
) -> None:
    """Track osu! beatmap exports as git history.

    Without a command, gitosu watches the exports directory and commits
    every export to the repository of its map.
    """
    overrides: dict[str, Any] = {
        "exports_dir": exports,
        "repositories_dir": repositories,
        "keep_latest_archive": True if keep_latest_osz else None,
    }
    if debug:
        overrides.update(log_level="DEBUG", debug=True)
    elif verbose:
        overrides["log_level"] = "INFO"

    try:
        settings = get_settings_for_cli(config, overrides)
    except ValidationError as e:
        handle_cli_error(
            ConfigurationError(
                message="Invalid configuration",
                hint="Run 'gitosu config init --stdout' to see the available settings",
                details={"errors": str(e)},
            ),
            verbose=verbose or debug,
        )
        return
    except (FileNotFoundError, GitOsuError) as e:
        handle_cli_error(e, verbose=verbose or debug)
        return

    set_settings(settings)
    configure_logging(settings)
    ctx.obj = {"verbose": verbose or debug}
    logger.debug("Settings loaded", config=str(config) if config else None)

    if ctx.invoked_subcommand is None:
        signal.signal(signal.SIGTERM, signal_handler)
        try:
            run_watch(settings)
        except GitOsuError as e:
            handle_cli_error(e, verbose=verbose or debug)


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
