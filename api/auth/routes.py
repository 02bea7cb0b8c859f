"""
Authentication endpoints for signup, login and the current user

HTTP   URI                      Action
----   ---                      ------
POST   /api/v1/auth/signup      Create an account and return a token
POST   /api/v1/auth/login       Exchange credentials for a token
GET    /api/v1/auth/me          Retrieve the authenticated user
"""
from fastapi import APIRouter, HTTPException, status

from core.deps import SessionDep
from api.auth.models import UserCredentials, UserPublic, AuthResponse
from api.auth.deps import CurrentUser
import api.auth.services as auth_services

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED
)
def signup(
    session: SessionDep,
    credentials: UserCredentials
) -> AuthResponse:
    """
    Register a new user account and log it in

    Raises:
        409: Username already exists
        400: Invalid username or password
    """
    user = auth_services.register_user(session, credentials)
    return auth_services.issue_token(user)


@router.post("/login", response_model=AuthResponse)
def login(
    session: SessionDep,
    credentials: UserCredentials
) -> AuthResponse:
    """
    Login with username and password

    Raises:
        401: Invalid credentials
    """
    user = auth_services.authenticate_user(
        session,
        credentials.username,
        credentials.password
    )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Wrong credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return auth_services.issue_token(user)


@router.get("/me", response_model=UserPublic)
def me(current_user: CurrentUser) -> UserPublic:
    """
    Get the authenticated user
    """
    return UserPublic.from_user(current_user)
