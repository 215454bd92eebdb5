"""Configuration management commands for gitosu."""

import typer

from .init import config_init
from .show import config_show

# Create config subapp
config_app = typer.Typer(
    name="config",
    help="Manage gitosu configuration",
    pretty_exceptions_enable=False,
)

config_app.command(name="init")(config_init)
config_app.command(name="show")(config_show)

__all__ = ["config_app"]
