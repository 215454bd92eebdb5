"""Output formatters for the gitosu CLI."""

from gitosu.cli.formatters.json_formatter import JsonFormatter

__all__ = ["JsonFormatter"]
