"""Directory checks shared by CLI commands."""

from __future__ import annotations

from pathlib import Path

from gitosu.exceptions import ConfigurationError


def require_directory(path: Path, description: str, option: str) -> Path:
    """Ensure a configured directory exists.

    Args:
        path: Directory to check
        description: Human readable name used in the error message
        option: CLI option that sets the directory

    Returns:
        The directory

    Raises:
        ConfigurationError: If the directory does not exist
    """
    if not path.is_dir():
        raise ConfigurationError(
            message=f"{description} directory doesn't exist: {path}",
            hint=f"Create it or pass {option}",
            details={"path": str(path)},
        )
    return path
