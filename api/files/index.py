"""
Metadata index for file records

Durable mapping from file id to declared metadata, backed by the SQL
database. Listing is always scoped to one owner.
"""
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from api.files.models import FileRecord, FileQuery, SortField, SortDirection
from core.exceptions import Conflict, NotFound, StorageError, ValidationError
from core.logger import logger

SORT_COLUMNS = {
    SortField.NAME: FileRecord.name,
    SortField.SIZE: FileRecord.size_bytes,
    SortField.DATE: FileRecord.created_at,
}


class MetadataIndex:
    """Insert, look up, list and delete FileRecords"""

    def __init__(self, session: Session):
        self.session = session

    def insert(self, record: FileRecord) -> FileRecord:
        """
        Add a record

        Raises:
            Conflict: If a record with the same id exists
            StorageError: On any other database failure
        """
        try:
            if self.session.get(FileRecord, record.id) is not None:
                raise Conflict(f"File {record.id} already exists")
            self.session.add(record)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise Conflict(f"File {record.id} already exists") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Failed to insert file record %s", record.id)
            raise StorageError("Failed to save file metadata") from e
        self.session.refresh(record)
        return record

    def get(self, file_id: uuid.UUID) -> FileRecord:
        """
        Get a record by id

        Raises:
            NotFound: If no record has this id
        """
        try:
            record = self.session.get(FileRecord, file_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to read file record %s", file_id)
            raise StorageError("Failed to read file metadata") from e
        if record is None:
            raise NotFound()
        return record

    def delete(self, file_id: uuid.UUID) -> None:
        """Delete a record; missing records are ignored"""
        try:
            record = self.session.get(FileRecord, file_id)
            if record is None:
                return
            self.session.delete(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Failed to delete file record %s", file_id)
            raise StorageError("Failed to delete file metadata") from e

    def list(
        self, owner_id: uuid.UUID, query: FileQuery
    ) -> tuple[list[FileRecord], int]:
        """
        List one owner's records

        Records are filtered by a case-insensitive substring of the name,
        sorted by the requested field with id ascending as tie-break, and
        sliced to the requested page.

        Returns:
            (records on the page, count of all matching records)
        """
        if query.page < 1:
            raise ValidationError("page must be >= 1")
        if query.page_size < 1:
            raise ValidationError("page_size must be >= 1")

        conditions = [FileRecord.owner_id == owner_id]
        if query.q:
            conditions.append(
                func.lower(col(FileRecord.name)).contains(
                    query.q.lower(), autoescape=True
                )
            )

        sort_column = col(SORT_COLUMNS[query.sort])
        order = sort_column.desc() if query.direction == SortDirection.DESC else sort_column.asc()

        try:
            total = self.session.exec(
                select(func.count()).select_from(FileRecord).where(*conditions)
            ).one()
            records = self.session.exec(
                select(FileRecord)
                .where(*conditions)
                .order_by(order, col(FileRecord.id).asc())
                .limit(query.page_size)
                .offset((query.page - 1) * query.page_size)
            ).all()
        except SQLAlchemyError as e:
            logger.exception("Failed to list files for owner %s", owner_id)
            raise StorageError("Failed to list file metadata") from e

        return list(records), total

    def list_ids(self, owner_id: uuid.UUID) -> set[uuid.UUID]:
        """All record ids belonging to one owner"""
        try:
            return set(
                self.session.exec(
                    select(FileRecord.id).where(FileRecord.owner_id == owner_id)
                ).all()
            )
        except SQLAlchemyError as e:
            logger.exception("Failed to list file ids for owner %s", owner_id)
            raise StorageError("Failed to list file metadata") from e
