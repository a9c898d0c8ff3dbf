"""FastAPI router for the file relay endpoints.

Endpoints:
    POST   /create-session                    Allocate a session token
    POST   /upload                            Upload a file (multipart form)
    GET    /download/{session_id}/{file_id}   Download file bytes
    DELETE /file/{session_id}/{file_id}       Delete a file and its ledger entry
    GET    /get-all/{session_id}              Raw ledger text, one line per file
    GET    /logs/{session_id}                 Raw activity log text

Paths and field names match what the mobile client sends.  Storage failures
are mapped here: NotFoundError -> 404, any other StorageError -> 500 with an
opaque message so that filesystem paths never reach the client.
"""
import logging
from typing import Optional, Union

from fastapi import APIRouter, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse, Response

from relay.config import get_config

from .errors import NotFoundError, StorageError
from .schemas import (
    CreateSessionResponse,
    DeleteResponse,
    UploadResponse,
    is_valid_identifier,
)
from .service import RelayService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])

INTERNAL_ERROR_DETAIL = "internal storage error"


def _service() -> RelayService:
    return RelayService.get_instance()


def _check_identifier(value: str, name: str) -> None:
    if not is_valid_identifier(value):
        raise HTTPException(status_code=400, detail=f"invalid {name}")


def _internal_error(action: str, exc: Exception) -> HTTPException:
    logger.error("%s failed: %s", action, exc, exc_info=exc)
    return HTTPException(status_code=500, detail=INTERNAL_ERROR_DETAIL)


def get_download_url(request: Request, session_id: str, file_id: str) -> str:
    """Generate the download URL for a file."""
    base_url = get_config().server.public_base_url or str(request.base_url)
    return f"{base_url.rstrip('/')}/download/{session_id}/{file_id}"


@router.post("/create-session", response_model=CreateSessionResponse)
def create_session() -> CreateSessionResponse:
    """Allocate a new session and return its token."""
    try:
        session_id = _service().create_session()
    except StorageError as e:
        raise _internal_error("Session creation", e)
    return CreateSessionResponse(session_id=session_id)


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    session_id: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    file: Union[UploadFile, str, None] = Form(None),
) -> UploadResponse:
    """Upload a file into a session.

    Args:
        session_id: Target session token.
        metadata: JSON object with checksum, iv, timestamp, fileName, fileSize.
        file: The (client-encrypted) payload, as a plain field or a file part.

    Raises:
        HTTPException 400: If a field is missing or the metadata is invalid.
        HTTPException 500: If the file or its ledger entry cannot be stored.
    """
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id is required")
    _check_identifier(session_id, "session_id")

    if not metadata:
        raise HTTPException(status_code=400, detail="metadata is required")

    if isinstance(file, UploadFile):
        data = await file.read()
    elif isinstance(file, str):
        data = file.encode("utf-8")
    else:
        data = b""
    if not data:
        raise HTTPException(status_code=400, detail="file is required")

    service = _service()
    try:
        file_id, parsed = await run_in_threadpool(service.upload, session_id, metadata, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid metadata: {e}")
    except StorageError as e:
        raise _internal_error("Upload", e)

    logger.info(
        f"File uploaded: {parsed.file_name} ({parsed.file_size} bytes) "
        f"to session {session_id} as {file_id}"
    )
    return UploadResponse(
        file_id=file_id,
        checksum=parsed.checksum,
        download_url=get_download_url(request, session_id, file_id),
    )


@router.get("/download/{session_id}/{file_id}")
def download_file(session_id: str, file_id: str) -> Response:
    """Download the bytes of a file.

    Raises:
        HTTPException 404: If the file does not exist.
    """
    _check_identifier(session_id, "session_id")
    _check_identifier(file_id, "file_id")
    try:
        data = _service().download(session_id, file_id)
    except (NotFoundError, ValueError):
        raise HTTPException(status_code=404, detail="file not found")
    except StorageError as e:
        raise _internal_error("Download", e)

    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{file_id}"'},
    )


@router.delete("/file/{session_id}/{file_id}", response_model=DeleteResponse)
def delete_file(session_id: str, file_id: str) -> DeleteResponse:
    """Delete a file and remove it from the session ledger."""
    _check_identifier(session_id, "session_id")
    _check_identifier(file_id, "file_id")
    try:
        removed = _service().delete(session_id, file_id)
    except (NotFoundError, ValueError):
        raise HTTPException(status_code=404, detail="file not found")
    except StorageError as e:
        raise _internal_error("Delete", e)

    return DeleteResponse(ledger_entries_removed=removed)


@router.get("/get-all/{session_id}", response_class=PlainTextResponse)
def get_all_metadata(session_id: str) -> PlainTextResponse:
    """Return the session ledger as text, one ``file_id: metadata`` line per file.

    A session without uploads yields an empty body.
    """
    _check_identifier(session_id, "session_id")
    try:
        text = _service().read_ledger(session_id)
    except StorageError as e:
        raise _internal_error("Metadata listing", e)
    return PlainTextResponse(text)


@router.get("/logs/{session_id}", response_class=PlainTextResponse)
def get_logs(session_id: str) -> PlainTextResponse:
    """Return the session's activity log as text (empty if nothing was logged)."""
    _check_identifier(session_id, "session_id")
    try:
        text = _service().read_log(session_id)
    except StorageError as e:
        raise _internal_error("Log read", e)
    return PlainTextResponse(text)
