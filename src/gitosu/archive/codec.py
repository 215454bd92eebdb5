"""Zip codec for osu! map archives (.osz).

Decoding turns an archive into a :class:`LogicalFileSet`; encoding writes a
file set back as a zip the game can import. Only entry paths and contents
are treated as meaningful. Timestamps, entry order, extra fields, comments
and the compression method are normalized on encode so that equal file sets
always produce byte-identical archives.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from gitosu.archive.models import LogicalFileSet, normalize_entry_path
from gitosu.config import get_logger
from gitosu.exceptions import MalformedArchiveError, UnsupportedEntryError

if TYPE_CHECKING:
    from gitosu.config import GitOsuSettings

logger = get_logger(__name__)

# Earliest timestamp representable in a zip local header
FIXED_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
# Regular file, rw-r--r--
FIXED_EXTERNAL_ATTR = (0o100644 & 0xFFFF) << 16
# MS-DOS, so the header does not depend on the encoding platform
FIXED_CREATE_SYSTEM = 0

SUPPORTED_METHODS = {
    zipfile.ZIP_STORED: "stored",
    zipfile.ZIP_DEFLATED: "deflated",
}
COMPRESSION_BY_NAME = {name: method for method, name in SUPPORTED_METHODS.items()}


class ArchiveCodec:
    """Reads and writes map archives with fixed archive-level defaults."""

    def __init__(
        self,
        compression: str = "deflated",
        compress_level: int | None = None,
    ) -> None:
        """Initialize the codec.

        Args:
            compression: Method used by encode, "deflated" or "stored"
            compress_level: Deflate level (0-9), None for the zlib default
        """
        try:
            self.compression = COMPRESSION_BY_NAME[compression.lower()]
        except KeyError as e:
            raise ValueError(
                f"Unsupported compression {compression!r}, "
                f"expected one of {sorted(COMPRESSION_BY_NAME)}"
            ) from e
        self.compress_level = compress_level

    @classmethod
    def from_settings(cls, settings: GitOsuSettings) -> ArchiveCodec:
        """Create a codec configured from application settings."""
        return cls(
            compression=settings.archive_compression,
            compress_level=settings.archive_compress_level,
        )

    def decode(self, data: bytes) -> LogicalFileSet:
        """Decode archive bytes into a logical file set.

        Args:
            data: Raw archive bytes

        Returns:
            The archive's files keyed by normalized relative path

        Raises:
            MalformedArchiveError: If the bytes are not a readable zip, or an
                entry is nested below another file entry
            UnsupportedEntryError: If an entry is encrypted or uses a
                compression method that cannot be written back
        """
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, ValueError) as e:
            raise MalformedArchiveError(
                message="File is not a valid zip archive",
                hint="The export may be incomplete or corrupted, try exporting again",
                details={"size": len(data), "error": str(e)},
            ) from e

        files = LogicalFileSet()
        with archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue

                path = normalize_entry_path(info.filename)
                if path is None:
                    logger.warning(
                        "Map archive contains a forbidden path, skipping entry",
                        entry=info.filename,
                    )
                    continue

                self._check_supported(info)

                if path in files:
                    logger.warning("Duplicate archive entry, keeping the last", entry=path)

                files.add(path, self._read_entry(archive, info))

        self._check_nesting(files)
        logger.debug("Decoded archive", files=len(files), size=files.total_size)
        return files

    def encode(self, files: LogicalFileSet) -> bytes:
        """Encode a logical file set into archive bytes.

        Args:
            files: Files to pack

        Returns:
            Zip archive bytes, identical for equal file sets
        """
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, mode="w", compression=self.compression) as archive:
            for path in files.sorted_paths():
                info = zipfile.ZipInfo(filename=path, date_time=FIXED_TIMESTAMP)
                info.compress_type = self.compression
                info.create_system = FIXED_CREATE_SYSTEM
                info.external_attr = FIXED_EXTERNAL_ATTR
                archive.writestr(
                    info,
                    files[path],
                    compress_type=self.compression,
                    compresslevel=self.compress_level,
                )

        data = buffer.getvalue()
        logger.debug("Encoded archive", files=len(files), size=len(data))
        return data

    @staticmethod
    def _check_supported(info: zipfile.ZipInfo) -> None:
        if info.flag_bits & 0x1:
            raise UnsupportedEntryError(
                message="Encrypted archive entries are not supported",
                entry=info.filename,
            )
        if info.compress_type not in SUPPORTED_METHODS:
            raise UnsupportedEntryError(
                message=f"Unsupported compression method {info.compress_type}",
                entry=info.filename,
                hint="Only stored and deflated entries can be round-tripped",
                details={"method": info.compress_type},
            )

    @staticmethod
    def _check_nesting(files: LogicalFileSet) -> None:
        # A path cannot be both a file and a directory in the working tree
        for path in files.sorted_paths():
            for parent in PurePosixPath(path).parents:
                if parent.as_posix() in files:
                    raise MalformedArchiveError(
                        message=(
                            f"Archive entry {path} is nested below the file "
                            f"entry {parent.as_posix()}"
                        ),
                        hint="Remove one of the conflicting files and export again",
                        details={"entry": path, "conflicts_with": parent.as_posix()},
                    )

    @staticmethod
    def _read_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
        try:
            return archive.read(info)
        except NotImplementedError as e:
            raise UnsupportedEntryError(
                message=f"Cannot read archive entry: {e}",
                entry=info.filename,
            ) from e
        except (zipfile.BadZipFile, zlib.error, EOFError, ValueError) as e:
            raise MalformedArchiveError(
                message=f"Archive entry is corrupted: {info.filename}",
                hint="The export may be incomplete or corrupted, try exporting again",
                details={"entry": info.filename, "error": str(e)},
            ) from e


_default_codec = ArchiveCodec()


def decode(data: bytes) -> LogicalFileSet:
    """Decode archive bytes with the default codec."""
    return _default_codec.decode(data)


def encode(files: LogicalFileSet) -> bytes:
    """Encode a file set with the default codec."""
    return _default_codec.encode(files)
