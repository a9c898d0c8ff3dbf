"""Session-scoped storage engine for the file relay.

A client allocates a short session token, then uploads and downloads opaque
(client-encrypted) blobs under it.  Each session owns:

- a directory of blobs keyed by random file ids (FileStore)
- an append-only ``file_id: metadata`` ledger (MetadataLedger)
- an append-only activity log (ActivityLog)

Sessions are never closed; stale directories are cleaned up outside the
relay.
"""

from .activity_log import ActivityLog
from .errors import NotFoundError, StorageError, StorageIOError
from .file_store import FileStore
from .ledger import LedgerEntry, MetadataLedger
from .locks import KeyedLocks
from .schemas import FileMetadata
from .service import RelayService
from .sessions import SessionAllocator

__all__ = [
    "ActivityLog",
    "FileMetadata",
    "FileStore",
    "KeyedLocks",
    "LedgerEntry",
    "MetadataLedger",
    "NotFoundError",
    "RelayService",
    "SessionAllocator",
    "StorageError",
    "StorageIOError",
]
