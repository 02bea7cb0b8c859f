"""
Routes/endpoints for the Files API

HTTP   URI                              Action
----   ---                              ------
POST   /api/v1/files/upload             Upload an encrypted container
GET    /api/v1/files                    List the caller's files
GET    /api/v1/files/[id]/download      Download the raw container bytes
DELETE /api/v1/files/[id]               Delete a file

All endpoints require a bearer token; every operation is scoped to the
authenticated principal.
"""

import io
import uuid

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from api.auth.deps import CurrentUser
from api.files.deps import FileServiceDep
from api.files.models import (
    FileMetadata,
    FilePublic,
    FileQuery,
    FilesPublic,
    SortDirection,
    SortField,
)
from core.config import get_settings
from core.exceptions import ValidationError

router = APIRouter(prefix="/files", tags=["File Endpoints"])


def sanitize_filename(filename: str) -> str:
    """
    Make a declared name safe for a Content-Disposition header

    Control characters, quotes and backslashes are dropped, non-ASCII
    characters become underscores and the result is capped at 255 chars.
    """
    cleaned = []
    for char in filename:
        if not char.isprintable() or char in ('"', "\\"):
            continue
        cleaned.append(char if char.isascii() else "_")
    return "".join(cleaned)[:255] or "download.bin"


@router.post(
    "/upload",
    response_model=FilePublic,
    status_code=status.HTTP_201_CREATED,
    tags=["File Endpoints"],
)
def upload_file(
    current_user: CurrentUser,
    file_service: FileServiceDep,
    metadata: str = Form(
        ..., description="JSON sidecar: original_name, mime_type, size_bytes, client_encryption_algo"
    ),
    file: UploadFile = File(..., description="Encrypted container bytes"),
) -> FilePublic:
    """
    Upload an encrypted container with its declared metadata.

    The server stores the bytes verbatim and never attempts to decrypt them.
    """
    try:
        sidecar = FileMetadata.model_validate_json(metadata)
    except PydanticValidationError as e:
        raise ValidationError("Invalid metadata") from e

    # Read one byte past the limit so oversized uploads are detected
    data = file.file.read(get_settings().MAX_UPLOAD_BYTES + 1)

    record = file_service.upload(
        principal_id=current_user.id,
        declared_name=sidecar.original_name,
        declared_mime_type=sidecar.mime_type,
        encrypted_bytes=data,
        declared_size=sidecar.size_bytes,
        encryption_algo=sidecar.client_encryption_algo,
    )
    return FilePublic.from_record(record)


@router.get("", response_model=FilesPublic, tags=["File Endpoints"])
def list_files(
    current_user: CurrentUser,
    file_service: FileServiceDep,
    q: str | None = Query(None, description="Case-insensitive substring of the file name"),
    sort: SortField = Query(SortField.NAME, description="Field to sort by"),
    direction: SortDirection = Query(SortDirection.ASC, description="Sort order (asc or desc)"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int | None = Query(None, ge=1, description="Number of items per page"),
) -> FilesPublic:
    """
    List the caller's files.

    Other principals' files are never included, whatever the query.
    """
    settings = get_settings()
    if page_size is None:
        page_size = settings.DEFAULT_PAGE_SIZE
    page_size = min(page_size, settings.MAX_PAGE_SIZE)

    query = FileQuery(
        q=q, sort=sort, direction=direction, page=page, page_size=page_size
    )
    return file_service.list(current_user.id, query)


@router.get("/{file_id}/download", tags=["File Endpoints"])
def download_file(
    file_id: uuid.UUID,
    current_user: CurrentUser,
    file_service: FileServiceDep,
) -> StreamingResponse:
    """
    Download the raw container bytes.

    The content type is always application/octet-stream; decryption happens
    on the client.
    """
    record, data = file_service.download(current_user.id, file_id)
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{sanitize_filename(record.name)}"',
            "Content-Length": str(len(data)),
        },
    )


@router.delete(
    "/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["File Endpoints"],
)
def delete_file(
    file_id: uuid.UUID,
    current_user: CurrentUser,
    file_service: FileServiceDep,
) -> Response:
    """
    Delete a file's metadata and its stored bytes.
    """
    file_service.delete(current_user.id, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
