"""Relay storage service.

Composes the session allocator, file store, metadata ledger and activity log
into the operations the HTTP layer exposes.  Layout on disk::

    uploads/{session_id}/{file_id}     file bytes
    uploads/{session_id}/meta.txt      metadata ledger
    logs/{session_id}/write.log        activity log

Ordering:
    - upload writes the bytes first and the ledger line second, so a failed
      write is never listed.
    - delete removes the bytes first and the ledger line second.  The two
      steps are not transactional; a crash in between leaves a ledger entry
      whose download reports NotFound until the delete is retried.

Activity log failures are logged and swallowed so that a full log disk does
not fail an upload whose bytes and ledger line are already committed.

Usage:
    service = RelayService.get_instance()
    session_id = service.create_session()
    file_id, metadata = service.upload(session_id, metadata_json, data)
"""
import logging
from typing import Optional, Tuple

from relay.config import AppSettings, get_config

from .activity_log import ActivityLog
from .errors import NotFoundError, StorageError
from .file_store import FileStore
from .ledger import MetadataLedger
from .schemas import FileMetadata
from .sessions import SessionAllocator

logger = logging.getLogger(__name__)


class RelayService:
    """Service for session-scoped file relay operations."""

    _instance: Optional["RelayService"] = None

    def __init__(
        self,
        sessions: SessionAllocator,
        files: FileStore,
        ledger: MetadataLedger,
        activity: ActivityLog,
    ) -> None:
        self.sessions = sessions
        self.files = files
        self.ledger = ledger
        self.activity = activity

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RelayService":
        """Build a service whose storage roots and tokens follow *settings*."""
        storage = settings.storage
        token = settings.sessions
        sessions = SessionAllocator(
            uploads_dir=settings.uploads_path,
            words=token.words,
            token_mode=token.token_mode,
            word_count=token.word_count,
            suffix_bytes=token.suffix_bytes,
            max_attempts=token.max_attempts,
        )
        ledger = MetadataLedger(sessions, filename=storage.ledger_filename, fsync=storage.fsync)
        files = FileStore(sessions, reserved_names=(storage.ledger_filename,), fsync=storage.fsync)
        activity = ActivityLog(settings.logs_path, filename=storage.log_filename)
        return cls(sessions, files, ledger, activity)

    @classmethod
    def get_instance(cls, settings: Optional[AppSettings] = None) -> "RelayService":
        """Get or create the singleton instance."""
        if cls._instance is None:
            cls._instance = cls.from_settings(settings or get_config())
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    def _record(self, session_id: str, message: str) -> None:
        try:
            self.activity.append(session_id, message)
        except StorageError as exc:
            logger.warning("Activity log entry dropped for session %s: %s", session_id, exc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_session(self) -> str:
        session_id = self.sessions.allocate()
        self._record(session_id, f"Created session '{session_id}'")
        return session_id

    def upload(self, session_id: str, metadata_json: str, data: bytes) -> Tuple[str, FileMetadata]:
        """Store *data* and record its metadata in the session ledger.

        Args:
            session_id: Session to upload into (created on demand).
            metadata_json: Client metadata as a JSON object.
            data: Opaque (client-encrypted) file bytes.

        Returns:
            The generated file id and the parsed metadata.

        Raises:
            ValueError: If *metadata_json* is not valid metadata.
            StorageIOError: If the bytes or the ledger line cannot be written.
        """
        metadata = FileMetadata.model_validate_json(metadata_json)
        payload = metadata_json.rstrip("\r\n")
        if "\n" in payload or "\r" in payload:
            payload = metadata.to_payload()

        file_id = self.files.put(session_id, data)
        self.ledger.append(session_id, file_id, payload)

        self._record(
            session_id,
            f"Session '{session_id}' uploaded file '{metadata.file_name}' "
            f"({metadata.checksum}, {metadata.file_size} bytes)",
        )
        return file_id, metadata

    def download(self, session_id: str, file_id: str) -> bytes:
        """Return the bytes of *file_id*; raises NotFoundError if absent."""
        data = self.files.get(session_id, file_id)
        self._record(session_id, f"Session '{session_id}' downloaded file '{file_id}'")
        return data

    def delete(self, session_id: str, file_id: str) -> int:
        """Delete *file_id* and its ledger entries.

        Returns:
            Number of ledger entries removed.

        Raises:
            NotFoundError: If neither the file bytes nor a ledger entry exist.
                Entries left behind by an interrupted delete are removed.
        """
        try:
            self.files.delete(session_id, file_id)
            bytes_removed = True
        except NotFoundError:
            bytes_removed = False

        removed = self.ledger.remove_by_key(session_id, file_id)
        if not bytes_removed:
            if removed == 0:
                raise NotFoundError(f"file {file_id} not found in session {session_id}")
            logger.warning("Removed dangling ledger entry %s from session %s", file_id, session_id)
        elif removed == 0:
            logger.warning("File %s in session %s had no ledger entry", file_id, session_id)

        self._record(session_id, f"File '{file_id}' was deleted from session '{session_id}'")
        return removed

    def read_ledger(self, session_id: str) -> str:
        """Return the session's ledger text, one ``file_id: metadata`` line per upload."""
        text = self.ledger.read(session_id)
        if self.ledger.exists(session_id):
            self._record(session_id, f"Session '{session_id}' requested metadata listing")
        return text

    def read_log(self, session_id: str) -> str:
        return self.activity.read(session_id)
