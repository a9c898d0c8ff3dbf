"""Human-readable activity trail, one log file per session.

Logs are stored in: logs/{session_id}/write.log

Each line is ``[YYYY-MM-DD HH:MM:SS] <message>``.  The log is append-only;
nothing in the relay rewrites or truncates it.
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from .errors import StorageIOError
from .locks import KeyedLocks
from .schemas import is_valid_identifier

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ActivityLog:
    """Per-session append-only event log.

    Args:
        logs_dir: Root directory holding one sub-directory per session.
        filename: Name of the log file inside each session directory.
        clock:    Returns the timestamp for new entries (local time by default).
    """

    def __init__(
        self,
        logs_dir: Union[str, Path],
        filename: str = "write.log",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._filename = filename
        self._clock = clock or datetime.now
        self._locks = KeyedLocks()

    def path(self, session_id: str) -> Path:
        if not is_valid_identifier(session_id):
            raise ValueError(f"invalid session id: {session_id!r}")
        return self._logs_dir / session_id / self._filename

    def format_entry(self, message: str) -> str:
        # Embedded newlines would split one event across lines.
        message = " ".join(message.splitlines())
        return f"[{self._clock().strftime(TIMESTAMP_FORMAT)}] {message}\n"

    def append(self, session_id: str, message: str) -> None:
        """Timestamp *message* and append it to the session's log.

        Raises:
            StorageIOError: If the log directory or file cannot be written.
        """
        log_path = self.path(session_id)
        with self._locks.hold(session_id):
            entry = self.format_entry(message)
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                with log_path.open("a", encoding="utf-8") as fh:
                    fh.write(entry)
            except OSError as exc:
                logger.error("Error writing activity log for session %s: %s", session_id, exc)
                raise StorageIOError(f"could not write activity log for session {session_id!r}") from exc

    def read(self, session_id: str) -> str:
        """Return the full log text, or an empty string if nothing was logged yet."""
        log_path = self.path(session_id)
        with self._locks.hold(session_id):
            try:
                return log_path.read_text(encoding="utf-8")
            except (FileNotFoundError, NotADirectoryError):
                return ""
            except (OSError, UnicodeDecodeError) as exc:
                raise StorageIOError(f"could not read activity log for session {session_id!r}") from exc
