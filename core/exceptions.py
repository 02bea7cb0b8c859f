"""
Error taxonomy shared by the container codec, the stores and the file service.

Every error is scoped to a single request. The HTTP layer maps each class to
a status code through ``status_code``; nothing here is retried internally.
"""

from fastapi import status


class TrustyError(Exception):
    """Base class for all domain errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedContainer(TrustyError):
    """Container is too short to hold a salt and a nonce."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid encrypted file format"


class DecryptionFailed(TrustyError):
    """Authentication tag did not verify.

    Raised for a wrong password and for a tampered container alike; the
    message is fixed so the two cases cannot be told apart.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Decryption failed - wrong password or corrupted file"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class NotFound(TrustyError):
    """No record or blob exists for the given id."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "File not found"


class Forbidden(TrustyError):
    """The record exists but the requester does not own it."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You don't own this file"


class ValidationError(TrustyError):
    """Missing, oversized or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid metadata"


class Conflict(TrustyError):
    """A record with the same id already exists."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "File already exists"


class StorageError(TrustyError):
    """Durable storage I/O failed. Callers may retry."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage error"
