"""Data models for decoded map archives."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator, Mapping
from pathlib import Path, PurePosixPath


def normalize_entry_path(name: str) -> str | None:
    """Normalize an archive entry name to a safe relative POSIX path.

    Args:
        name: Raw entry name as stored in the archive

    Returns:
        The normalized path, or None when the entry would escape the
        extraction root (absolute, drive qualified, or using ``..``)
    """
    candidate = name.replace("\\", "/")
    if candidate.startswith("/"):
        return None
    parts = [part for part in candidate.split("/") if part not in ("", ".")]
    if not parts:
        return None
    if any(part == ".." for part in parts):
        return None
    if ":" in parts[0]:
        return None
    return "/".join(parts)


class LogicalFileSet(Mapping[str, bytes]):
    """Ordered mapping of archive-relative paths to file content.

    Equality compares the path set and the content of each path; insertion
    order is kept for iteration but does not take part in comparisons.
    """

    def __init__(self, files: Mapping[str, bytes] | None = None) -> None:
        self._files: dict[str, bytes] = {}
        if files:
            for path, data in files.items():
                self.add(path, data)

    def add(self, path: str, data: bytes) -> None:
        """Add or replace a file.

        Args:
            path: Relative POSIX path
            data: File content

        Raises:
            ValueError: If the path is not a safe relative path
        """
        normalized = normalize_entry_path(path)
        if normalized is None or normalized != path:
            raise ValueError(f"Not a normalized relative path: {path!r}")
        self._files[path] = bytes(data)

    def __getitem__(self, path: str) -> bytes:
        return self._files[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LogicalFileSet):
            return self._files == other._files
        if isinstance(other, Mapping):
            return self._files == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"LogicalFileSet({len(self)} files, {self.total_size} bytes)"

    @property
    def total_size(self) -> int:
        """Total size of all file contents in bytes."""
        return sum(len(data) for data in self._files.values())

    def sorted_paths(self) -> list[str]:
        """Return all paths in a stable order."""
        return sorted(self._files)

    def digest(self) -> str:
        """Compute an order independent sha256 over paths and contents."""
        hasher = hashlib.sha256()
        for path in self.sorted_paths():
            data = self._files[path]
            hasher.update(path.encode("utf-8"))
            hasher.update(b"\0")
            hasher.update(len(data).to_bytes(8, "big"))
            hasher.update(data)
        return hasher.hexdigest()

    @classmethod
    def from_directory(cls, root: Path) -> LogicalFileSet:
        """Read every regular file below ``root``.

        Args:
            root: Directory to read

        Returns:
            File set keyed by paths relative to ``root``
        """
        files = cls()
        if not root.is_dir():
            return files
        for path in sorted(root.rglob("*")):
            if path.is_file() and not path.is_symlink():
                rel = PurePosixPath(path.relative_to(root).as_posix())
                files.add(str(rel), path.read_bytes())
        return files
