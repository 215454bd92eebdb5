"""Error handling utilities for CLI commands."""

from __future__ import annotations

import traceback

import typer
from rich.console import Console

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.config import get_logger
from gitosu.exceptions import GitOsuError

logger = get_logger(__name__)
console = Console(stderr=True)


def handle_cli_error(
    error: Exception,
    verbose: bool = False,
    exit_code: int = 1,
    json_output: bool = False,
) -> None:
    """Handle errors in CLI commands with helpful formatting.

    Args:
        error: The exception that was raised
        verbose: Whether to show detailed error information
        exit_code: Exit code to use when exiting
        json_output: Print a JSON error document on stdout instead

    Raises:
        typer.Exit: Always, with ``exit_code``
    """
    if json_output:
        message = error.message if isinstance(error, GitOsuError) else str(error)
        typer.echo(JsonFormatter().format_error_response(message, exit_code))
        logger.error(
            "Command failed",
            error_type=type(error).__name__,
            message=message,
            exit_code=exit_code,
        )
        raise typer.Exit(exit_code)

    if isinstance(error, GitOsuError):
        console.print(f"[red]✗ {error.message}[/red]")

        if error.hint:
            console.print(f"[yellow]→ {error.hint}[/yellow]")

        if verbose and error.details:
            console.print("\n[dim]Details:[/dim]")
            for key, value in error.details.items():
                console.print(f"  [dim]{key}:[/dim] {value}")

        logger.error(
            "gitosu error occurred",
            error_type=type(error).__name__,
            message=error.message,
            hint=error.hint,
            details=error.details,
            exit_code=exit_code,
        )

    elif isinstance(error, FileNotFoundError):
        console.print(f"[red]✗ File not found: {error}[/red]")
        console.print("[yellow]→ Check that the file path is correct[/yellow]")
        logger.error(
            "File not found",
            error=str(error),
            filename=getattr(error, "filename", None),
            exit_code=exit_code,
        )

    elif isinstance(error, KeyboardInterrupt):
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        logger.info("Operation interrupted by user", exit_code=exit_code)

    else:
        console.print(f"[red]✗ Unexpected error: {error!s}[/red]")

        if verbose:
            console.print("\n[dim]Full traceback:[/dim]")
            console.print(traceback.format_exc())
        else:
            console.print("[dim]Run with --verbose for full error details[/dim]")

        logger.error(
            "Unexpected error occurred",
            error=str(error),
            error_type=type(error).__name__,
            exit_code=exit_code,
            exc_info=True,
        )

    raise typer.Exit(exit_code)
