"""
Authentication service layer for user management and authentication
"""
from functools import lru_cache
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from api.auth.models import User, UserCredentials, UserPublic, AuthResponse
from core.config import get_settings
from core.logger import logger
from core.security import hash_password, verify_password, create_access_token


def validate_credentials(credentials: UserCredentials) -> None:
    """
    Check username and password against the account rules

    Raises:
        HTTPException: 400 if either value breaks a rule
    """
    settings = get_settings()
    username_len = len(credentials.username)
    if not settings.USERNAME_MIN_LENGTH <= username_len <= settings.USERNAME_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Invalid username (must be {settings.USERNAME_MIN_LENGTH}-"
                f"{settings.USERNAME_MAX_LENGTH} characters)"
            ),
        )
    if len(credentials.password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Invalid password (must be at least "
                f"{settings.PASSWORD_MIN_LENGTH} characters)"
            ),
        )


@lru_cache
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


def get_user_by_id(session: Session, user_id: uuid.UUID) -> User | None:
    """Get user by primary key"""
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> User | None:
    """Get user by username (case-sensitive)"""
    return session.exec(select(User).where(User.username == username)).first()


def register_user(session: Session, credentials: UserCredentials) -> User:
    """
    Register a new user

    Args:
        session: Database session
        credentials: Username and password

    Returns:
        Created User object

    Raises:
        HTTPException: 400 on invalid input, 409 if username already exists
    """
    validate_credentials(credentials)

    if get_user_by_username(session, credentials.username):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists"
        )

    user = User(
        username=credentials.username,
        hashed_password=hash_password(credentials.password),
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        # Lost a race against a concurrent signup
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists"
        ) from e
    session.refresh(user)

    logger.info("Registered user %s", user.id)
    return user


def authenticate_user(session: Session, username: str, password: str) -> User | None:
    """
    Authenticate user with username and password

    Returns:
        User object if authentication successful, None otherwise
    """
    user = get_user_by_username(session, username)
    if not user:
        # Hash anyway so response time does not reveal unknown usernames
        verify_password(password, _dummy_hash())
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def issue_token(user: User) -> AuthResponse:
    """Create an access token response for a user"""
    settings = get_settings()
    access_token = create_access_token({"sub": str(user.id)})
    return AuthResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserPublic.from_user(user),
    )
