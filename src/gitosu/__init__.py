"""gitosu: track osu! beatmap exports as git history.

Every exported ``.osz`` archive is unpacked into a git repository dedicated
to its map and committed when its contents changed. Any snapshot can be
rebuilt into an archive the game imports again.
"""

from .archive import ArchiveCodec, LogicalFileSet
from .config import GitOsuSettings, get_logger, get_settings
from .synchronizer import (
    ExportResult,
    ImportResult,
    MapRepository,
    PendingImport,
    RepositoryStore,
    SyncEngine,
    resolve_identity,
)

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    "ArchiveCodec",
    "ExportResult",
    "GitOsuSettings",
    "ImportResult",
    "LogicalFileSet",
    "MapRepository",
    "PendingImport",
    "RepositoryStore",
    "SyncEngine",
    "__version__",
    "get_logger",
    "get_settings",
    "resolve_identity",
]
