"""
Authentication models for users and tokens
"""
from datetime import datetime, timezone
import uuid
from sqlmodel import Field, SQLModel
from pydantic import ConfigDict


class User(SQLModel, table=True):
    """User account; its id is the principal that owns files"""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=50)
    hashed_password: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)


# Request/Response Models

class UserCredentials(SQLModel):
    """Signup and login request"""
    username: str
    password: str = Field(max_length=100)  # Validation done in service layer


class UserPublic(SQLModel):
    """Public user information"""
    user_id: uuid.UUID
    username: str
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(user_id=user.id, username=user.username, created_at=user.created_at)


class AuthResponse(SQLModel):
    """Access token and the authenticated user"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic
