"""Configuration display commands."""

from __future__ import annotations

from typing import Annotated, Any

import typer
from rich.console import Console
from rich.tree import Tree

from gitosu.cli.formatters.json_formatter import JsonFormatter
from gitosu.config import GitOsuSettings, get_settings

console = Console()

# Field prefix -> group shown in the tree
_GROUPS = {
    "archive_": "archive",
    "watch_": "watch",
    "commit_": "commit",
    "log_": "logging",
}


def _group_for(field_name: str) -> str:
    for prefix, group in _GROUPS.items():
        if field_name.startswith(prefix):
            return group
    return "application"


def config_show(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Display the effective configuration after merging all sources.

    Examples:
        gitosu config show
        gitosu -e ~/osu/Exports config show --json
    """
    settings = get_settings()

    if json_output:
        typer.echo(JsonFormatter().format(settings))
        return

    _show_config_tree(settings)


def _show_config_tree(settings: GitOsuSettings) -> None:
    """Display configuration as a tree structure."""
    tree = Tree("[bold cyan]gitosu Configuration[/bold cyan]")

    groups: dict[str, list[tuple[str, Any]]] = {}
    for field_name in type(settings).model_fields:
        value = getattr(settings, field_name)
        if value is None:
            continue
        groups.setdefault(_group_for(field_name), []).append((field_name, value))

    for group_name, items in sorted(groups.items()):
        branch = tree.add(f"[bold]{group_name}[/bold]")
        for field_name, value in sorted(items):
            branch.add(f"{field_name}: [green]{value}[/green]")

    console.print(tree)
