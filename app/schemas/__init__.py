"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthResponse,
    MessageResponse,
    SignInRequest,
    SignUpRequest,
    UserPublic,
    UsersListResponse,
)
from app.schemas.health import HealthResponse

__all__ = [
    "AuthResponse",
    "HealthResponse",
    "MessageResponse",
    "SignInRequest",
    "SignUpRequest",
    "UserPublic",
    "UsersListResponse",
]
