"""Map archive reading and writing."""

from .codec import ArchiveCodec, decode, encode
from .models import LogicalFileSet, normalize_entry_path

__all__ = ["ArchiveCodec", "LogicalFileSet", "decode", "encode", "normalize_entry_path"]
