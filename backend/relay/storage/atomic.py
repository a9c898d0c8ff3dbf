"""Write-to-temp-then-rename helper shared by the file store and the ledger."""
import os
import tempfile
from pathlib import Path


def write_atomic(path: Path, data: bytes, fsync: bool = True) -> None:
    """Replace *path* with *data* so readers see either old or new content.

    The temp file lives in the target directory so ``os.replace`` never
    crosses a filesystem boundary.  On failure the temp file is removed and
    the original exception propagates; *path* is left as it was.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            if fsync:
                os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
