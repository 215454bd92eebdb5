"""gitosu configuration settings."""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitosu.exceptions import ConfigurationError, check_config_keys


class GitOsuSettings(BaseSettings):
    """gitosu configuration settings.

    Settings are loaded with the following precedence (highest to lowest):
    1. CLI arguments (when provided via command flags)
       Example: gitosu --exports ~/osu/Exports

    2. Config file values (YAML, TOML, or JSON)
       Example: gitosu --config myconfig.yaml
       Multiple files: Later files override earlier ones

    3. Environment variables (prefixed with GITOSU_)
       Example: export GITOSU_REPOSITORIES_DIR=~/maps

    4. .env file (in current directory or specified path)

    5. Default values (defined in field declarations below)
    """

    model_config = SettingsConfigDict(
        env_prefix="GITOSU_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Directory settings
    exports_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory the game writes exported archives to",
    )
    repositories_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory holding one git repository per map",
    )
    managed_dir: str = Field(
        default="map",
        description="Repository subdirectory rewritten on every import",
        pattern=r"^[^/\\.][^/\\]*$",
    )
    keep_latest_archive: bool = Field(
        default=False,
        description=(
            "Keep and commit the latest raw archive in the repository root "
            "(at least doubles the repository size)"
        ),
    )

    # Archive settings
    archive_extensions: list[str] = Field(
        default_factory=lambda: [".osz"],
        description="File suffixes treated as map archives",
    )
    archive_compression: str = Field(
        default="deflated",
        description="Compression used when rebuilding archives (deflated, stored)",
        pattern="^(?i)(deflated|stored)$",
    )
    archive_compress_level: int | None = Field(
        default=None,
        description="Deflate level for rebuilt archives (0-9, unset = zlib default)",
        ge=0,
        le=9,
    )

    # Watch settings
    watch_settle_seconds: float = Field(
        default=2.0,
        description="Quiet period before an archive is considered fully written",
        ge=0.0,
    )
    watch_poll_interval: float = Field(
        default=0.5,
        description="Interval between checks of pending archives",
        gt=0.0,
    )
    watch_workers: int = Field(
        default=4,
        description="Number of imports processed in parallel",
        ge=1,
    )
    watch_max_pending: int = Field(
        default=100,
        description="Maximum number of archives waiting to settle",
        ge=1,
    )

    # Commit settings
    commit_author_name: str | None = Field(
        default=None,
        description="Author name for commits (default: git configuration)",
    )
    commit_author_email: str | None = Field(
        default=None,
        description="Author email for commits (default: git configuration)",
    )

    # Debug settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # Logging settings
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        pattern="^(?i)(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_format: str = Field(
        default="console",
        description="Log output format (console, json, structured)",
        pattern="^(?i)(console|json|structured)$",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )

    @field_validator("exports_dir", "repositories_dir", "log_file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path | None:
        """Expand environment variables and resolve path.

        Accepts None (for optional fields), str (supports env vars and ~
        expansion) and Path. Collections are rejected.
        """
        if v is None:
            return None
        if isinstance(v, str):
            expanded = os.path.expandvars(v)
            return Path(expanded).expanduser().resolve()
        if isinstance(v, Path):
            return v.expanduser().resolve()
        if isinstance(v, (dict, list, set, tuple)):  # noqa: UP038
            raise ValueError(
                f"Path fields cannot accept {type(v).__name__} types. "
                f"Expected str or Path, got: {v!r}"
            )
        return Path(str(v)).resolve()

    @field_validator("archive_extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> list[str]:
        """Accept a comma separated string and normalize to lowercase suffixes."""
        if isinstance(v, str):
            v = [part for part in v.split(",")]
        if not isinstance(v, (list, tuple, set)):  # noqa: UP038
            raise ValueError(
                f"archive_extensions must be a list, got {type(v).__name__}"
            )
        normalized = []
        for item in v:
            suffix = str(item).strip().lower()
            if not suffix:
                continue
            if not suffix.startswith("."):
                suffix = f".{suffix}"
            normalized.append(suffix)
        if not normalized:
            raise ValueError("archive_extensions cannot be empty")
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Normalize log level to uppercase for case-insensitive handling."""
        if isinstance(v, str):
            return v.upper()
        raise ValueError(f"log_level must be a string, got {type(v).__name__}")

    @field_validator("log_format", "archive_compression", mode="before")
    @classmethod
    def normalize_lowercase(cls, v: Any) -> str:
        """Normalize enumerated string options to lowercase."""
        if isinstance(v, str):
            return v.lower()
        raise ValueError(f"Expected a string, got {type(v).__name__}")

    @classmethod
    def from_env(cls) -> GitOsuSettings:
        """Create settings from environment variables."""
        return cls()

    @classmethod
    def from_file(cls, config_path: Path | str) -> GitOsuSettings:
        """Load settings from a configuration file.

        Args:
            config_path: Path to configuration file (YAML, TOML, or JSON).

        Returns:
            Settings loaded from the file.

        Raises:
            ConfigurationError: If file format is not supported.
            FileNotFoundError: If config file doesn't exist.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        return cls(**cls.read_config_file(config_path))

    @staticmethod
    def read_config_file(config_path: Path) -> dict[str, Any]:
        """Read the raw key/value pairs of a configuration file.

        Args:
            config_path: Path to a YAML, TOML or JSON file

        Returns:
            Parsed configuration values
        """
        suffix = config_path.suffix.lower()

        if suffix in {".yml", ".yaml"}:
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        elif suffix == ".json":
            with config_path.open(encoding="utf-8") as f:
                data = json.load(f)
        else:
            raise ConfigurationError(
                message=f"Unsupported configuration file format: {suffix}",
                hint="Use one of the supported formats: .yml, .yaml, .toml, or .json",
                details={
                    "file": str(config_path),
                    "detected_format": suffix,
                    "supported_formats": [".yml", ".yaml", ".toml", ".json"],
                },
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                message=f"Configuration file must contain a mapping: {config_path}",
                details={"file": str(config_path), "type": type(data).__name__},
            )

        check_config_keys(data)
        return data

    @classmethod
    def from_multiple_sources(
        cls,
        config_files: list[Path | str] | None = None,
        env_file: Path | str | None = None,
        cli_args: dict[str, Any] | None = None,
    ) -> GitOsuSettings:
        """Load settings with proper precedence from multiple sources.

        Precedence (highest to lowest):
        1. CLI arguments
        2. Config files (last file wins)
        3. Environment variables
        4. .env file
        5. Default values

        Args:
            config_files: List of config files to load (later files override earlier).
            env_file: Path to .env file (default: .env in current directory).
            cli_args: Dictionary of CLI arguments.

        Returns:
            Merged settings from all sources.
        """
        data: dict[str, Any] = {}

        if config_files:
            for config_file in config_files:
                path = Path(config_file)
                if not path.exists():
                    from gitosu.config.logging import get_logger as _get_logger

                    _get_logger("gitosu.config.settings").warning(
                        "Configuration file not found, using defaults",
                        config_file=str(config_file),
                    )
                    continue
                data.update(cls.read_config_file(path))

        if env_file:
            settings = cls(_env_file=env_file, **data)  # type: ignore[call-arg]
        else:
            settings = cls(**data)

        if cli_args:
            cli_data = {k: v for k, v in cli_args.items() if v is not None}
            if cli_data:
                updated_data = settings.model_dump()
                updated_data.update(cli_data)
                settings = cls(**updated_data)

        return settings


# Global settings instance
_settings: GitOsuSettings | None = None
# Cache for config file paths that exist
_config_paths_cache: list[Path | str] | None = None


def _get_config_paths() -> list[Path | str]:
    """Get list of config file paths to check.

    Returns paths in priority order (later files override earlier).
    """
    global _config_paths_cache

    if _config_paths_cache is not None:
        return _config_paths_cache

    potential_paths = [
        Path("/etc/gitosu/config.yaml"),
        Path("/etc/gitosu/config.toml"),
        Path.home() / ".config" / "gitosu" / "config.yaml",
        Path.home() / ".config" / "gitosu" / "config.json",
        Path.home() / ".config" / "gitosu" / "config.toml",
        Path.cwd() / "gitosu.yaml",
        Path.cwd() / "gitosu.json",
        Path.cwd() / "gitosu.toml",
    ]

    existing_paths: list[Path | str] = []
    for path in potential_paths:
        try:
            if path.is_file():
                existing_paths.append(path)
        except OSError:
            continue

    _config_paths_cache = existing_paths
    return existing_paths


def get_settings() -> GitOsuSettings:
    """Get the global settings instance.

    Returns:
        Global GitOsuSettings instance.
    """
    global _settings
    if _settings is None:
        config_paths = _get_config_paths()
        if config_paths:
            _settings = GitOsuSettings.from_multiple_sources(config_files=config_paths)
        else:
            _settings = GitOsuSettings.from_env()
    return _settings


def set_settings(settings: GitOsuSettings) -> None:
    """Set the global settings instance.

    Args:
        settings: Settings instance to use globally.
    """
    global _settings
    _settings = settings


def clear_settings_cache() -> None:
    """Clear the global settings cache.

    This forces get_settings() to re-read from environment variables
    and configuration files on the next call.
    """
    global _settings, _config_paths_cache
    _settings = None
    _config_paths_cache = None


def reset_settings() -> None:
    """Reset the global settings instance."""
    clear_settings_cache()


def get_settings_for_cli(
    config_file: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> GitOsuSettings:
    """Get settings for CLI commands with consistent precedence.

    Args:
        config_file: Optional specific config file to load. If not provided,
                    uses standard config locations.
        cli_overrides: Dictionary of CLI argument overrides. Only non-None
                      values are applied.

    Returns:
        GitOsuSettings instance with all sources merged.

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist.
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")

        return GitOsuSettings.from_multiple_sources(
            config_files=[config_file],
            cli_args=cli_overrides,
        )

    settings = get_settings()
    if cli_overrides:
        filtered_overrides = {k: v for k, v in cli_overrides.items() if v is not None}
        if filtered_overrides:
            data = settings.model_dump()
            data.update(filtered_overrides)
            settings = GitOsuSettings(**data)

    return settings
