"""
Services for the Files API

The file service moves opaque encrypted blobs between the caller, the blob
store and the metadata index. It never decrypts or inspects content.

Cross-store ordering:
- upload writes the blob before the index record, so a failed insert leaves
  at worst an unreferenced blob
- delete removes the index record before the blob, so a failure in between
  never leaves a record pointing at missing bytes
"""
import math
import uuid
from dataclasses import dataclass, field

from api.files.index import MetadataIndex
from api.files.models import FileRecord, FileQuery, FilePublic, FilesPublic
from api.files.permissions import require_owner
from core.config import Settings, get_settings
from core.exceptions import StorageError, ValidationError
from core.logger import logger
from core.storage import BlobStore


def _validate_label(value: str | None, field_name: str, max_length: int) -> str:
    """Declared metadata must be a non-empty, length-bounded string"""
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


class FileService:
    """upload / list / download / delete for one request"""

    def __init__(
        self,
        index: MetadataIndex,
        blobs: BlobStore,
        settings: Settings | None = None,
    ):
        self.index = index
        self.blobs = blobs
        self.settings = settings or get_settings()

    def upload(
        self,
        principal_id: uuid.UUID,
        declared_name: str,
        declared_mime_type: str,
        encrypted_bytes: bytes,
        declared_size: int | None = None,
        encryption_algo: str | None = None,
    ) -> FileRecord:
        """
        Store a container and index its declared metadata

        Raises:
            ValidationError: Empty name/mime type or oversized payload
            StorageError: Blob or index write failed
        """
        _validate_label(declared_name, "original_name", self.settings.MAX_NAME_LENGTH)
        _validate_label(
            declared_mime_type, "mime_type", self.settings.MAX_MIME_TYPE_LENGTH
        )
        if encryption_algo is not None and len(encryption_algo) > 100:
            raise ValidationError("client_encryption_algo must be at most 100 characters")
        if len(encrypted_bytes) > self.settings.MAX_UPLOAD_BYTES:
            raise ValidationError(
                f"File exceeds maximum size of {self.settings.MAX_UPLOAD_BYTES} bytes"
            )
        if declared_size is not None and declared_size != len(encrypted_bytes):
            logger.warning(
                "Declared size %s differs from received size %d; using received size",
                declared_size,
                len(encrypted_bytes),
            )

        file_id = uuid.uuid4()
        self.blobs.put(principal_id, file_id, encrypted_bytes)

        record = FileRecord(
            id=file_id,
            owner_id=principal_id,
            name=declared_name,
            mime_type=declared_mime_type,
            size_bytes=len(encrypted_bytes),
            encryption_algo=encryption_algo,
        )
        try:
            record = self.index.insert(record)
        except Exception:
            logger.exception(
                "Index insert failed, rolling back blob %s/%s", principal_id, file_id
            )
            self._rollback_blob(principal_id, file_id)
            raise

        logger.info("Uploaded file %s for owner %s", file_id, principal_id)
        return record

    def _rollback_blob(self, owner_id: uuid.UUID, file_id: uuid.UUID) -> None:
        # Best effort: an orphaned blob is reclaimed by the sweep script
        try:
            self.blobs.delete(owner_id, file_id)
        except StorageError:
            logger.exception("Failed to roll back upload, orphaned blob: %s/%s", owner_id, file_id)

    def list(self, principal_id: uuid.UUID, query: FileQuery) -> FilesPublic:
        """List the principal's own files"""
        records, total = self.index.list(principal_id, query)
        return FilesPublic(
            files=[FilePublic.from_record(r) for r in records],
            total=total,
            page=query.page,
            page_size=query.page_size,
            total_pages=math.ceil(total / query.page_size),
        )

    def get_record(self, principal_id: uuid.UUID, file_id: uuid.UUID) -> FileRecord:
        """
        Raises:
            NotFound: No record with this id
            Forbidden: Record belongs to another principal
        """
        record = self.index.get(file_id)
        require_owner(principal_id, record.owner_id)
        return record

    def download(
        self, principal_id: uuid.UUID, file_id: uuid.UUID
    ) -> tuple[FileRecord, bytes]:
        """Return the record and its stored bytes, unchanged"""
        record = self.get_record(principal_id, file_id)
        data = self.blobs.get(record.owner_id, record.id)
        return record, data

    def delete(self, principal_id: uuid.UUID, file_id: uuid.UUID) -> None:
        """Remove the index record, then the blob"""
        record = self.get_record(principal_id, file_id)
        owner_id = record.owner_id
        self.index.delete(file_id)
        try:
            self.blobs.delete(owner_id, file_id)
        except StorageError:
            # The record is gone, so the file is deleted as far as callers can tell
            logger.exception("Failed to delete blob, orphaned blob: %s/%s", owner_id, file_id)
        logger.info("Deleted file %s for owner %s", file_id, owner_id)


@dataclass
class SweepReport:
    """Result of an orphan sweep"""

    orphans: list[tuple[str, str]] = field(default_factory=list)
    deleted: int = 0
    errors: int = 0


def find_orphaned_blobs(index: MetadataIndex, blobs: BlobStore) -> list[tuple[str, str]]:
    """
    Find blobs with no index record

    Returns:
        (owner_id, blob_id) pairs
    """
    orphans = []
    for owner_id in blobs.list_owner_ids():
        try:
            owner_uuid = uuid.UUID(owner_id)
        except ValueError:
            logger.warning("Skipping unexpected partition %s", owner_id)
            continue
        known = {str(file_id) for file_id in index.list_ids(owner_uuid)}
        for blob_id in blobs.list_blob_ids(owner_id):
            if blob_id not in known:
                orphans.append((owner_id, blob_id))
    return orphans


def sweep_orphaned_blobs(
    index: MetadataIndex, blobs: BlobStore, dry_run: bool = False
) -> SweepReport:
    """Delete blobs that no index record references"""
    report = SweepReport(orphans=find_orphaned_blobs(index, blobs))
    for owner_id, blob_id in report.orphans:
        if dry_run:
            logger.info("[DRY RUN] Would delete orphaned blob %s/%s", owner_id, blob_id)
            continue
        try:
            blobs.delete(owner_id, blob_id)
            report.deleted += 1
        except StorageError:
            logger.exception("Failed to delete orphaned blob %s/%s", owner_id, blob_id)
            report.errors += 1
    return report
