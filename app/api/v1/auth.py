"""Sign-up, sign-in and sign-out with cookie sessions, plus auth dependencies."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.cookies import clear_token_cookie, read_cookie, set_token_cookie
from app.core.database import get_db
from app.core.security import (
    InvalidTokenError,
    TokenExpiredError,
    create_access_token,
    decode_access_token,
)
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
    UserPublic,
)
from app.services.auth import (
    InvalidCredentialsError,
    UserAlreadyExistsError,
    authenticate_user,
    create_user,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _issue_session(user: User, response: Response, settings: Settings) -> None:
    token = create_access_token(
        {"id": user.id, "email": user.email, "role": user.role}, settings
    )
    set_token_cookie(response, token, settings)


@router.post(
    "/sign-up",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
def sign_up(
    body: SignUpRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """Register a user, set the session cookie and return the public user."""
    try:
        user = create_user(
            db,
            settings,
            name=body.name,
            email=body.email,
            password=body.password,
            role=body.role,
        )
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e

    _issue_session(user, response, settings)
    logger.info(
        "User signed up with name: %s, email: %s, role: %s", user.name, user.email, user.role
    )
    return AuthResponse(
        message="User signed up successfully",
        user=UserPublic.model_validate(user),
    )


@router.post("/sign-in", response_model=AuthResponse)
def sign_in(
    body: SignInRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthResponse:
    """
    Authenticate with email and password and set the session cookie.
    Unknown email and wrong password return the same 401 body.
    """
    try:
        user = authenticate_user(db, email=body.email, password=body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message
        ) from e

    _issue_session(user, response, settings)
    logger.info("User signed in with email: %s, role: %s", user.email, user.role)
    return AuthResponse(
        message="User signed in successfully",
        user=UserPublic.model_validate(user),
    )


@router.post("/sign-out", response_model=MessageResponse)
def sign_out(
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """Clear the session cookie. Succeeds with or without an active session."""
    clear_token_cookie(response, settings)
    logger.info("User signed out")
    return MessageResponse(message="User signed out successfully")


def get_current_user(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UserPublic:
    """Dependency: require a valid session cookie and return the current user. Raises 401 otherwise."""
    token = read_cookie(request, settings.COOKIE_NAME)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        payload = decode_access_token(token, settings)
    except TokenExpiredError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
        )
    try:
        user_id = int(payload["id"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
        )
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return UserPublic.model_validate(user)


def require_admin(
    current_user: Annotated[UserPublic, Depends(get_current_user)],
) -> UserPublic:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.get("/me", response_model=UserPublic)
def read_me(
    current_user: Annotated[UserPublic, Depends(get_current_user)],
) -> UserPublic:
    """Return the user behind the session cookie."""
    return current_user
