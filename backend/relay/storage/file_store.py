"""Blob storage keyed by (session, file id).

Files are stored in: uploads/{session_id}/{file_id}

The file id is a random UUID4, so blobs under distinct ids never share a
path and need no locking.  Bytes are opaque; the client encrypts them before
upload.
"""
import logging
import uuid
from pathlib import Path

from .atomic import write_atomic
from .errors import NotFoundError, StorageIOError
from .schemas import is_valid_identifier
from .sessions import SessionAllocator

logger = logging.getLogger(__name__)


class FileStore:
    """Reads, writes and deletes file bytes inside session directories."""

    def __init__(
        self,
        sessions: SessionAllocator,
        reserved_names: tuple = (),
        fsync: bool = True,
    ) -> None:
        self._sessions = sessions
        self._reserved = frozenset(reserved_names)
        self._fsync = fsync

    def _path(self, session_id: str, file_id: str) -> Path:
        if not is_valid_identifier(file_id) or file_id in self._reserved:
            raise ValueError(f"invalid file id: {file_id!r}")
        return self._sessions.resolve(session_id) / file_id

    def put(self, session_id: str, data: bytes) -> str:
        """Store *data* under a fresh file id and return the id.

        The bytes are written to a temp file and renamed into place, so a
        failed write never leaves a file under the returned id.

        Raises:
            StorageIOError: If the session directory or the file cannot be written.
        """
        session_dir = self._sessions.ensure(session_id)
        file_id = str(uuid.uuid4())
        file_path = session_dir / file_id
        try:
            write_atomic(file_path, data, fsync=self._fsync)
        except OSError as exc:
            logger.error("Failed to save file %s in session %s: %s", file_id, session_id, exc)
            raise StorageIOError(f"could not write file {file_id}") from exc

        logger.info("Saved file %s in session %s (%d bytes)", file_id, session_id, len(data))
        return file_id

    def get(self, session_id: str, file_id: str) -> bytes:
        """Return the bytes stored under *file_id*.

        Raises:
            NotFoundError: If the session or file does not exist.
            StorageIOError: On any other read failure.
        """
        file_path = self._path(session_id, file_id)
        try:
            return file_path.read_bytes()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise NotFoundError(f"file {file_id} not found in session {session_id}") from exc
        except OSError as exc:
            raise StorageIOError(f"could not read file {file_id}") from exc

    def delete(self, session_id: str, file_id: str) -> None:
        """Remove the bytes stored under *file_id*.

        The ledger entry is not touched; callers remove it separately.

        Raises:
            NotFoundError: If the file does not exist.
            StorageIOError: On any other failure.
        """
        file_path = self._path(session_id, file_id)
        try:
            file_path.unlink()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFoundError(f"file {file_id} not found in session {session_id}") from exc
        except OSError as exc:
            raise StorageIOError(f"could not delete file {file_id}") from exc

        logger.info("Deleted file %s from session %s", file_id, session_id)
