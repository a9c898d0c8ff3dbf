"""Append-only metadata ledger, one per session.

Each session directory holds a text ledger (``meta.txt`` by default) with one
line per uploaded file::

    <file_id>: <metadata payload>\\n

Lines appear in upload order and the ledger is the only source for listing a
session's files; the directory is never scanned.  Removal rewrites the ledger
without the matching lines via a temp file and ``os.replace``, so a failed
rewrite leaves the previous content intact.

Thread safety: every operation on one session's ledger (append, list and the
read-modify-write of ``remove_by_key``) runs under that session's lock.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .atomic import write_atomic
from .errors import StorageIOError
from .locks import KeyedLocks
from .schemas import FileMetadata
from .sessions import SessionAllocator

logger = logging.getLogger(__name__)

SEPARATOR = ": "


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LedgerEntry:
    """One ``file_id: payload`` line of a ledger."""

    file_id: str
    payload: str

    def to_line(self) -> str:
        return f"{self.file_id}{SEPARATOR}{self.payload}\n"

    def metadata(self) -> FileMetadata:
        """Parse the payload as :class:`FileMetadata` JSON."""
        return FileMetadata.model_validate_json(self.payload)

    @classmethod
    def from_line(cls, line: str) -> Optional["LedgerEntry"]:
        """Parse a ledger line; returns None for blank or malformed lines."""
        line = line.rstrip("\r\n")
        if not line:
            return None
        file_id, sep, payload = line.partition(SEPARATOR)
        if not sep or not file_id:
            return None
        return cls(file_id=file_id, payload=payload)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class MetadataLedger:
    """Per-session ``file_id -> metadata`` record."""

    def __init__(
        self,
        sessions: SessionAllocator,
        filename: str = "meta.txt",
        fsync: bool = True,
    ) -> None:
        self._sessions = sessions
        self._filename = filename
        self._fsync = fsync
        self._locks = KeyedLocks()

    @property
    def filename(self) -> str:
        return self._filename

    def path(self, session_id: str) -> Path:
        return self._sessions.resolve(session_id) / self._filename

    # ------------------------------------------------------------------
    # Internal (caller holds the session lock)
    # ------------------------------------------------------------------

    def _read_text(self, session_id: str) -> str:
        try:
            return self.path(session_id).read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError):
            return ""
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageIOError(f"could not read ledger for session {session_id!r}") from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def append(self, session_id: str, file_id: str, payload: str) -> None:
        """Append one ``file_id: payload`` line, creating the ledger if absent.

        Raises:
            ValueError: If the key contains the separator or the payload spans lines.
            StorageIOError: If the ledger cannot be written.
        """
        if not file_id or SEPARATOR in file_id or "\n" in file_id:
            raise ValueError(f"invalid ledger key: {file_id!r}")
        if "\n" in payload or "\r" in payload:
            raise ValueError("ledger payload must be a single line")

        line = LedgerEntry(file_id, payload).to_line().encode("utf-8")
        with self._locks.hold(session_id):
            self._sessions.ensure(session_id)
            try:
                with self.path(session_id).open("ab") as fh:
                    fh.write(line)
                    fh.flush()
                    if self._fsync:
                        os.fsync(fh.fileno())
            except OSError as exc:
                logger.error("Failed to append to ledger of session %s: %s", session_id, exc)
                raise StorageIOError(f"could not append to ledger for session {session_id!r}") from exc

        logger.debug("Ledger %s: appended %s", session_id, file_id)

    def remove_by_key(self, session_id: str, file_id: str) -> int:
        """Remove every line keyed by *file_id*.

        Returns:
            Number of lines removed (normally 0 or 1).

        Raises:
            StorageIOError: If the ledger cannot be read or rewritten.  The
                previous content is intact in that case.
        """
        with self._locks.hold(session_id):
            text = self._read_text(session_id)
            if not text:
                return 0

            kept: List[str] = []
            removed = 0
            for line in text.split("\n"):
                if not line:
                    continue
                entry = LedgerEntry.from_line(line)
                if entry is not None and entry.file_id == file_id:
                    removed += 1
                    continue
                kept.append(line + "\n")

            if removed == 0:
                return 0

            try:
                write_atomic(self.path(session_id), "".join(kept).encode("utf-8"), fsync=self._fsync)
            except OSError as exc:
                logger.error("Failed to rewrite ledger of session %s: %s", session_id, exc)
                raise StorageIOError(f"could not rewrite ledger for session {session_id!r}") from exc

        logger.info("Ledger %s: removed %d entr%s for %s",
                    session_id, removed, "y" if removed == 1 else "ies", file_id)
        return removed

    def read(self, session_id: str) -> str:
        """Return the full ledger text, malformed lines included; "" if absent."""
        with self._locks.hold(session_id):
            return self._read_text(session_id)

    def list(self, session_id: str) -> List[LedgerEntry]:
        """Return all entries in append order; empty if there is no ledger."""
        text = self.read(session_id)

        entries = []
        for line in text.split("\n"):
            entry = LedgerEntry.from_line(line)
            if entry is None:
                if line.strip():
                    logger.warning("Skipping malformed ledger line in session %s", session_id)
                continue
            entries.append(entry)
        return entries

    def exists(self, session_id: str) -> bool:
        """Return True once the session has had a ledger written."""
        return self.path(session_id).is_file()
