"""Archive to git repository synchronization for gitosu."""

from .engine import SyncEngine, write_atomic
from .identity import canonicalize, resolve_identity, safe_dirname
from .locks import IdentityLockTable
from .models import ExportResult, ImportResult, ImportState, PendingImport
from .store import MapRepository, RepositoryStore, SnapshotInfo

__all__ = [
    "ExportResult",
    "IdentityLockTable",
    "ImportResult",
    "ImportState",
    "MapRepository",
    "PendingImport",
    "RepositoryStore",
    "SnapshotInfo",
    "SyncEngine",
    "canonicalize",
    "resolve_identity",
    "safe_dirname",
    "write_atomic",
]
