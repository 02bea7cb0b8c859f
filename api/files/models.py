"""
Models for the Files API
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlmodel import SQLModel, Field
from pydantic import ConfigDict


class SortField(str, Enum):
    """Listing sort keys as exposed in the query string"""

    NAME = "name"
    SIZE = "size"
    DATE = "date"


class SortDirection(str, Enum):
    """Listing sort direction"""

    ASC = "asc"
    DESC = "desc"


class FileRecord(SQLModel, table=True):
    """
    Metadata for one encrypted blob.

    name, mime_type and encryption_algo are declared by the uploader and never
    checked against the content. size_bytes is the length of the stored
    (encrypted) blob.
    """

    __tablename__ = "files"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(index=True, nullable=False)
    name: str = Field(max_length=255, index=True)
    mime_type: str = Field(max_length=255)
    size_bytes: int = Field(nullable=False)
    encryption_algo: str | None = Field(default=None, max_length=100)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), index=True
    )

    model_config = ConfigDict(from_attributes=True)


class FileMetadata(SQLModel):
    """Sidecar sent with an upload"""

    original_name: str
    mime_type: str
    size_bytes: int | None = None
    client_encryption_algo: str | None = None


class FileQuery(SQLModel):
    """Owner-scoped listing query"""

    q: str | None = None
    sort: SortField = SortField.NAME
    direction: SortDirection = SortDirection.ASC
    page: int = 1
    page_size: int = 20

    model_config = ConfigDict(extra="forbid")


class FilePublic(SQLModel):
    """Public file representation"""

    id: uuid.UUID
    original_name: str
    mime_type: str
    size_bytes: int
    encryption_algo: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: FileRecord) -> "FilePublic":
        return cls(
            id=record.id,
            original_name=record.name,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            encryption_algo=record.encryption_algo,
            created_at=record.created_at,
        )


class FilesPublic(SQLModel):
    """Paginated file listing"""

    files: list[FilePublic]
    total: int
    page: int
    page_size: int
    total_pages: int
