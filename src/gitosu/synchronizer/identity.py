"""Map identity resolution.

osu! appends a duplicate counter such as ``" (2)"`` when an export would
overwrite an existing file. Exports that differ only by that counter belong
to the same map and therefore to the same repository.
"""

from __future__ import annotations

import re

from gitosu.exceptions import InvalidNameError

# Trailing " (N)" with N a positive integer, applied once
DUPLICATE_COUNTER = re.compile(r" \([1-9][0-9]*\)$")

# Characters that are not allowed in file names on common platforms
UNSAFE_CHARACTERS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')

RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)


def _basename(name: str) -> str:
    # Archive names may come from either platform's path syntax
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def canonicalize(name: str) -> str:
    """Map an archive file name to its canonical identity.

    The extension is removed, then a single trailing duplicate counter,
    then surrounding whitespace. Case and inner whitespace are kept as is.

    Args:
        name: Archive file name, e.g. ``"Artist - Title (Mapper) (2).osz"``

    Returns:
        The canonical identity, e.g. ``"Artist - Title (Mapper)"``

    Raises:
        InvalidNameError: If nothing is left after normalization
    """
    base = _basename(name)
    stem = base.rpartition(".")[0] if "." in base else base
    stem = DUPLICATE_COUNTER.sub("", stem)
    identity = stem.strip()
    if not identity:
        raise InvalidNameError(
            message=f"Cannot derive a map name from {name!r}",
            hint="Rename the archive or pass --use-repository",
            details={"archive_name": name},
        )
    return identity


def resolve_identity(name: str, override: str | None = None) -> str:
    """Resolve the identity for an import.

    Args:
        name: Archive file name
        override: Explicit identity, used verbatim apart from trimming

    Returns:
        The identity used to select the repository

    Raises:
        InvalidNameError: If the resulting identity is empty
    """
    if override is None:
        return canonicalize(name)

    identity = override.strip()
    if not identity:
        raise InvalidNameError(
            message="Repository name override cannot be empty",
            details={"archive_name": name},
        )
    return identity


def safe_dirname(identity: str) -> str:
    """Encode an identity as a directory name that is valid everywhere.

    Args:
        identity: Canonical identity

    Returns:
        A deterministic, filesystem safe directory name
    """
    encoded = UNSAFE_CHARACTERS.sub("_", identity)

    # Windows silently drops trailing dots and spaces
    stripped = encoded.rstrip(". ")
    encoded = stripped + "_" * (len(encoded) - len(stripped))

    if encoded in ("", ".", ".."):
        return encoded + "_"
    if encoded.split(".", 1)[0].upper() in RESERVED_NAMES:
        return encoded + "_"
    return encoded
