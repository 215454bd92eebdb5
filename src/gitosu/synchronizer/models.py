"""Data models for imports and exports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class ImportState(str, Enum):
    """Stages an import passes through."""

    DECODED = "decoded"
    MATERIALIZED = "materialized"
    DIFFED = "diffed"
    COMMITTED = "committed"
    NOOP_SKIPPED = "noop_skipped"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingImport:
    """One archive waiting to be imported.

    Attributes:
        name: Archive file name as written by the game
        data: Raw archive bytes
        identity_override: Explicit repository identity, bypasses name
            canonicalization
        source: Where the archive was read from, if it came from disk
    """

    name: str
    data: bytes = field(repr=False)
    identity_override: str | None = None
    source: Path | None = None

    @classmethod
    def from_path(cls, path: Path, identity_override: str | None = None) -> PendingImport:
        """Read an archive from disk."""
        return cls(
            name=path.name,
            data=path.read_bytes(),
            identity_override=identity_override,
            source=path,
        )


@dataclass
class ImportResult:
    """Outcome of a finished import."""

    identity: str
    archive_name: str
    repository: Path
    states: list[ImportState] = field(default_factory=list)
    commit: str | None = None
    changed_paths: list[str] = field(default_factory=list)
    file_count: int = 0
    digest: str = ""

    @property
    def committed(self) -> bool:
        """Whether the import created a new snapshot."""
        return self.commit is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "archive_name": self.archive_name,
            "repository": str(self.repository),
            "states": [state.value for state in self.states],
            "commit": self.commit,
            "committed": self.committed,
            "changed_paths": self.changed_paths,
            "file_count": self.file_count,
            "digest": self.digest,
        }


@dataclass
class ExportResult:
    """Outcome of rebuilding an archive from a snapshot."""

    identity: str
    commit: str
    output: Path
    file_count: int
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "commit": self.commit,
            "output": str(self.output),
            "file_count": self.file_count,
            "size": self.size,
        }
