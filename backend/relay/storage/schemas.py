"""Pydantic schemas for the file relay.

This module defines the data models exchanged with relay clients:
- FileMetadata: caller-supplied metadata recorded in the session ledger
- CreateSessionResponse: API response after a session is allocated
- UploadResponse: API response after a successful upload
- DeleteResponse: API response after a file is deleted

The wire format keeps the camelCase keys produced by the mobile client
(``fileName``, ``fileSize``); Python code uses the snake_case attribute names.
The checksum and IV are opaque to the server: the client encrypts the payload
before upload and the server never verifies either value.
"""
import re

from pydantic import BaseModel, ConfigDict, Field


# Session tokens and file ids are used as path components.
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$")


def is_valid_identifier(value: str) -> bool:
    """Return True if *value* is safe to use as a session token or file id.

    Examples:
        >>> is_valid_identifier("mango-river-4fa21c")
        True
        >>> is_valid_identifier("../etc")
        False
    """
    return bool(value) and IDENTIFIER_PATTERN.match(value) is not None


class FileMetadata(BaseModel):
    """Metadata for one uploaded blob.

    Stored verbatim (as compact JSON) after the file id in the session ledger.
    Missing keys take zero values and unknown keys are ignored; only
    malformed JSON or a value of the wrong type is rejected.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    checksum: str = Field("", description="Client-computed checksum of the payload")
    iv: str = Field("", description="Initialization vector used by the client")
    timestamp: float = Field(0.0, description="Client timestamp of the upload")
    file_name: str = Field("", alias="fileName", description="Original filename")
    file_size: int = Field(0, alias="fileSize", description="File size in bytes")

    def to_payload(self) -> str:
        """Serialise to the single-line JSON payload written to the ledger."""
        return self.model_dump_json(by_alias=True)


class CreateSessionResponse(BaseModel):
    """Response after a session has been allocated."""
    session_id: str = Field(..., description="Session token")


class UploadResponse(BaseModel):
    """Response after a successful upload.

    Field names follow what the original client decodes.
    """
    success: bool = Field(True, description="Always true on success")
    message: str = Field("File uploaded successfully", description="Human readable result")
    file_id: str = Field(..., description="Generated file id")
    checksum: str = Field(..., description="Checksum echoed back from the metadata")
    download_url: str = Field(..., description="URL to download the file")


class DeleteResponse(BaseModel):
    """Response after a file has been deleted."""
    message: str = Field("file deleted successfully")
    ledger_entries_removed: int = Field(..., description="Ledger lines removed for the file")
