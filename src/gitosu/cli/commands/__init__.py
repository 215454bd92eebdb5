"""gitosu CLI commands."""

from .export import export_command
from .history import history_command
from .import_cmd import import_command
from .list import list_command
from .watch import watch_command

__all__ = [
    "export_command",
    "history_command",
    "import_command",
    "list_command",
    "watch_command",
]
