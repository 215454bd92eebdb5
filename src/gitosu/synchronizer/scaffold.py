"""Files written into a new map repository."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

MARKER_FILE = ".gitosu.yaml"
MARKER_FORMAT = 1

README_FILE = "README.md"
GITATTRIBUTES_FILE = ".gitattributes"

# Map files must come back byte for byte, so git may never touch line endings
GITATTRIBUTES = "* -text\n"

README_TEMPLATE = """\
# {map_name}

This repository tracks the history of the osu! beatmap **{map_name}**.
Every time the map is exported from the editor, gitosu imports the `.osz`
archive and records the changes as a new commit.

## Layout

- `{managed_dir}/` holds the unpacked contents of the latest export.
  **Do not edit files in this directory by hand**: it is cleared and
  rewritten on every import, so any manual change will be lost.
- Everything else (this README included) belongs to you and is never
  modified by gitosu.

## Useful commands

```sh
gitosu history            # list the recorded versions
gitosu export             # rebuild the latest version as an .osz
gitosu export <commit>    # rebuild an older version
```

Don't forget to push!
"""


def render_readme(map_name: str, managed_dir: str) -> str:
    """Render the README for a new map repository."""
    return README_TEMPLATE.format(map_name=map_name, managed_dir=managed_dir)


def render_marker(identity: str, managed_dir: str) -> str:
    """Render the marker file that identifies a managed repository."""
    data = {
        "format": MARKER_FORMAT,
        "identity": identity,
        "managed_dir": managed_dir,
    }
    return yaml.safe_dump(data, sort_keys=True, allow_unicode=True)


def read_marker(repo_root: Path) -> dict[str, Any]:
    """Read the marker file of a repository.

    Args:
        repo_root: Repository working tree

    Returns:
        Marker contents, empty when the file is missing or unreadable
    """
    marker_path = repo_root / MARKER_FILE
    if not marker_path.is_file():
        return {}
    try:
        data = yaml.safe_load(marker_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def write_scaffold(repo_root: Path, identity: str, managed_dir: str) -> list[str]:
    """Write the scaffold files into a fresh repository.

    Args:
        repo_root: Repository working tree
        identity: Map identity, used as the README title
        managed_dir: Name of the managed subdirectory

    Returns:
        Paths of the written files, relative to ``repo_root``
    """
    files = {
        README_FILE: render_readme(identity, managed_dir),
        GITATTRIBUTES_FILE: GITATTRIBUTES,
        MARKER_FILE: render_marker(identity, managed_dir),
    }
    for name, content in files.items():
        (repo_root / name).write_text(content, encoding="utf-8", newline="\n")
    (repo_root / managed_dir).mkdir(exist_ok=True)
    return list(files)
