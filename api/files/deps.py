"""
Files dependencies for dependency injection
"""
from typing import Annotated
from fastapi import Depends

from core.deps import SessionDep, BlobStoreDep
from api.files.index import MetadataIndex
from api.files.services import FileService


def get_file_service(session: SessionDep, blobs: BlobStoreDep) -> FileService:
    """
    Build a file service bound to this request's database session
    """
    return FileService(MetadataIndex(session), blobs)


# Type alias for clean usage in route signatures
FileServiceDep = Annotated[FileService, Depends(get_file_service)]
