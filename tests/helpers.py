"""Shared helpers for building test archives."""

from __future__ import annotations

import io
import warnings
import zipfile

SAMPLE_MAP: dict[str, bytes | str] = {
    "Artist - Title (Mapper) [Normal].osu": (
        "osu file format v14\r\n\r\n[General]\r\nAudioFilename: audio.mp3\r\n"
    ),
    "audio.mp3": b"ID3\x00\x01\x02fake audio",
    "bg/background.jpg": b"\xff\xd8\xff\xe0fake jpeg",
}


def build_archive(
    files: dict[str, bytes | str],
    compression: int = zipfile.ZIP_DEFLATED,
) -> bytes:
    """Build zip bytes the way an editor export would.

    Entries are written in the given order; duplicate names are allowed.
    """
    buffer = io.BytesIO()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        with zipfile.ZipFile(buffer, "w", compression=compression) as archive:
            for name, content in files.items():
                data = content.encode("utf-8") if isinstance(content, str) else content
                archive.writestr(name, data)
    return buffer.getvalue()


def write_export(directory, name: str, files: dict[str, bytes | str]):
    """Write an archive named ``name`` into ``directory`` and return its path."""
    path = directory / name
    path.write_bytes(build_archive(files))
    return path
