"""Custom exception hierarchy for gitosu with helpful error messages."""

from __future__ import annotations

from typing import Any


class GitOsuError(Exception):
    """Base exception with helpful formatting for all gitosu errors.

    Provides structured error messages with hints and details to help users
    understand and fix problems.
    """

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize exception with structured error information.

        Args:
            message: Primary error message describing what went wrong
            hint: Optional hint suggesting how to fix the problem
            details: Optional dictionary with additional debugging information
        """
        self.message = message
        self.hint = hint
        self.details = details
        super().__init__(self.format_error())

    def format_error(self) -> str:
        """Format the error message with hint and details.

        Returns:
            Formatted error string with all available information
        """
        output = f"Error: {self.message}"
        if self.hint:
            output += f"\nHint: {self.hint}"
        if self.details:
            details_str = "\n".join(
                f"  {key}: {value}" for key, value in self.details.items()
            )
            output += f"\nDetails:\n{details_str}"
        return output


class ConfigurationError(GitOsuError):
    """Configuration errors including invalid settings and missing config files."""

    pass


class ArchiveError(GitOsuError):
    """Base error for archives that cannot be decoded."""

    pass


class MalformedArchiveError(ArchiveError):
    """The byte stream is not a readable zip container."""

    pass


class UnsupportedEntryError(ArchiveError):
    """An archive entry uses a method the codec cannot round-trip."""

    def __init__(
        self,
        message: str,
        entry: str | None = None,
        hint: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Error message
            entry: Name of the offending archive entry
            hint: Optional hint
            details: Optional extra details
        """
        self.entry = entry
        merged: dict[str, Any] = dict(details or {})
        if entry is not None:
            merged.setdefault("entry", entry)
        super().__init__(message=message, hint=hint, details=merged or None)


class InvalidNameError(GitOsuError):
    """An archive name or identity override is empty after normalization."""

    pass


class RepositoryNotFoundError(GitOsuError):
    """No map repository exists for the requested identity or path."""

    pass


class SnapshotNotFoundError(GitOsuError):
    """A snapshot reference does not resolve to usable map contents."""

    pass


class FileSystemError(GitOsuError):
    """File system operation errors."""

    pass


class GitError(FileSystemError):
    """Errors raised by the version-control engine."""

    pass


def check_config_keys(config: dict[str, Any]) -> None:
    """Check for common configuration mistakes.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigurationError: With hints about correct configuration keys
    """
    wrong_keys = {
        "exports": "exports_dir",
        "repositories": "repositories_dir",
        "repos": "repositories_dir",
        "keep_latest_osz": "keep_latest_archive",
    }

    for wrong, correct in wrong_keys.items():
        if wrong in config:
            raise ConfigurationError(
                message=f"Invalid configuration key '{wrong}'",
                hint=f"Use '{correct}' instead of '{wrong}'",
                details={
                    "found_keys": list(config.keys()),
                    "invalid_key": wrong,
                    "correct_key": correct,
                },
            )
