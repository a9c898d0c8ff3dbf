"""Typed failures raised by the storage engine.

Callers (the HTTP layer) map these to transport status codes:
    - NotFoundError  -> 404
    - StorageIOError -> 500, with an opaque message
"""


class StorageError(Exception):
    """Base class for storage engine failures."""

    pass


class NotFoundError(StorageError):
    """A session, file or resource is absent where a read expected it."""

    pass


class StorageIOError(StorageError):
    """A filesystem operation failed for a reason other than absence."""

    pass
