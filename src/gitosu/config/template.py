"""Configuration template generator for gitosu."""

from __future__ import annotations

from pathlib import Path

import yaml

# (key, default, comment); a None key starts a new commented section
_TEMPLATE_ENTRIES: list[tuple[str | None, object, str]] = [
    (None, None, "Directories"),
    ("exports_dir", "~/osu!/Exports", "Directory osu! writes exported .osz files to"),
    ("repositories_dir", "~/osu-maps", "Directory holding one git repository per map"),
    ("managed_dir", "map", "Repository subdirectory rewritten on every import"),
    (
        "keep_latest_archive",
        False,
        "Also commit the latest .osz in the repository root (doubles repo size)",
    ),
    (None, None, "Archives"),
    ("archive_extensions", [".osz"], "File suffixes treated as map archives"),
    ("archive_compression", "deflated", "Compression for rebuilt archives: deflated, stored"),
    ("archive_compress_level", None, "Deflate level 0-9 (default: zlib default)"),
    (None, None, "Watcher"),
    ("watch_settle_seconds", 2.0, "Quiet period before an export is imported"),
    ("watch_poll_interval", 0.5, "Seconds between checks of pending exports"),
    ("watch_workers", 4, "Imports processed in parallel (one per map at a time)"),
    ("watch_max_pending", 100, "Maximum number of exports waiting to settle"),
    (None, None, "Commits"),
    ("commit_author_name", None, "Author name (default: git configuration)"),
    ("commit_author_email", None, "Author email (default: git configuration)"),
    (None, None, "Logging"),
    ("log_level", "WARNING", "DEBUG, INFO, WARNING, ERROR, CRITICAL"),
    ("log_format", "console", "console, json, structured"),
    ("log_file", None, "Optional log file path"),
    ("debug", False, "Enable debug mode"),
]


def generate_config_template() -> str:
    """Generate a YAML configuration template with comments.

    Returns:
        A string containing the YAML configuration template.
    """
    lines = [
        "# gitosu configuration file",
        "# Every setting can also be provided as an environment variable",
        "# prefixed with GITOSU_, e.g. GITOSU_EXPORTS_DIR=/path/to/exports",
    ]
    for key, value, comment in _TEMPLATE_ENTRIES:
        if key is None:
            lines.extend(["", f"# {comment}"])
            continue
        lines.append(f"# {comment}")
        rendered = yaml.safe_dump(
            {key: value}, default_flow_style=True, sort_keys=False
        ).strip()
        # safe_dump wraps single mappings in braces in flow style
        rendered = rendered.removeprefix("{").removesuffix("}")
        if value is None:
            lines.append(f"# {key}:")
        else:
            lines.append(rendered)
    return "\n".join(lines) + "\n"


def get_default_config_path() -> Path:
    """Get the default path for the user configuration file.

    Returns:
        ~/.config/gitosu/config.yaml
    """
    return Path.home() / ".config" / "gitosu" / "config.yaml"


def write_config_template(output_path: Path, force: bool = False) -> Path:
    """Write the configuration template to a file.

    Args:
        output_path: Where to write the template
        force: Overwrite an existing file

    Returns:
        The path written to

    Raises:
        FileExistsError: If the file exists and force is not set
    """
    if output_path.exists() and not force:
        raise FileExistsError(f"Configuration file already exists: {output_path}")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(generate_config_template(), encoding="utf-8")
    return output_path
