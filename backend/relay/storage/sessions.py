"""Session token allocation.

A session is a token plus one directory under the uploads root:
    uploads/{session_id}/

Tokens are drawn from a configurable word pool.  In ``phrase`` mode they
combine several words with a random hex suffix (``mango-river-4fa21c``); in
``word`` mode a single word is drawn, which keeps tokens short but makes
collisions likely under load.
"""
import logging
import secrets
from pathlib import Path
from typing import List, Optional, Union

from .errors import StorageIOError
from .schemas import is_valid_identifier

logger = logging.getLogger(__name__)


class SessionAllocator:
    """Mints session tokens and reserves their storage directories."""

    def __init__(
        self,
        uploads_dir: Union[str, Path],
        words: List[str],
        token_mode: str = "phrase",
        word_count: int = 2,
        suffix_bytes: int = 3,
        max_attempts: int = 8,
    ) -> None:
        if not words:
            raise ValueError("word pool must not be empty")
        self._uploads_dir = Path(uploads_dir)
        self._words = list(words)
        self._token_mode = token_mode
        self._word_count = word_count
        self._suffix_bytes = suffix_bytes
        self._max_attempts = max_attempts

    @property
    def uploads_dir(self) -> Path:
        return self._uploads_dir

    def new_token(self) -> str:
        """Draw a token without reserving it."""
        if self._token_mode == "word":
            return secrets.choice(self._words)
        parts = [secrets.choice(self._words) for _ in range(self._word_count)]
        if self._suffix_bytes:
            parts.append(secrets.token_hex(self._suffix_bytes))
        return "-".join(parts)

    def resolve(self, session_id: str) -> Path:
        """Return the directory for *session_id*.  Does not touch the filesystem.

        Raises:
            ValueError: If *session_id* is not a safe path component.
        """
        if not is_valid_identifier(session_id):
            raise ValueError(f"invalid session id: {session_id!r}")
        return self._uploads_dir / session_id

    def ensure(self, session_id: str) -> Path:
        """Create the directory for *session_id* if needed and return it."""
        session_dir = self.resolve(session_id)
        try:
            session_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"could not create session directory for {session_id!r}") from exc
        return session_dir

    def allocate(self, token: Optional[str] = None) -> str:
        """Allocate a session and return its token.

        With an explicit *token* the call only ensures the directory exists;
        an existing session and its files are left untouched.

        Without one, fresh tokens are drawn until one whose directory does
        not exist yet can be reserved.  After ``max_attempts`` collisions the
        last drawn token is reused and the two sessions share storage.
        """
        if token is not None:
            self.ensure(token)
            return token

        try:
            self._uploads_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError("could not create uploads directory") from exc

        candidate = self.new_token()
        for attempt in range(1, self._max_attempts + 1):
            try:
                self.resolve(candidate).mkdir()
                logger.info("Allocated session %s", candidate)
                return candidate
            except FileExistsError:
                logger.debug("Session token %s already in use (attempt %d)", candidate, attempt)
                if attempt < self._max_attempts:
                    candidate = self.new_token()
            except OSError as exc:
                raise StorageIOError("could not create session directory") from exc

        logger.warning(
            "Could not find an unused session token after %d attempts; reusing %s",
            self._max_attempts,
            candidate,
        )
        self.ensure(candidate)
        return candidate
