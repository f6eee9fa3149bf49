"""Request/response schemas for auth endpoints."""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

NAME_MIN_LEN = 2
NAME_MAX_LEN = 100
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

_HAS_LETTER = re.compile(r"[A-Za-z]")
_HAS_DIGIT = re.compile(r"\d")


def _normalize_email(v: object) -> object:
    if isinstance(v, str):
        return v.strip().lower()
    return v


class SignUpRequest(BaseModel):
    """Body for POST /auth/sign-up."""

    name: str = Field(
        ..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN, description="Display name"
    )
    email: EmailStr = Field(..., description="Email (stored lowercased)")
    password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        description="Password: 6-128 chars with at least one letter and one digit",
    )
    role: Literal["user", "admin"] = Field(default="user", description="Account role")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        if not _HAS_LETTER.search(v) or not _HAS_DIGIT.search(v):
            raise ValueError("Password must contain at least one letter and one digit")
        return v


class SignInRequest(BaseModel):
    """Body for POST /auth/sign-in."""

    email: EmailStr = Field(..., description="Email")
    password: str = Field(
        ..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password"
    )

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        return _normalize_email(v)


class UserPublic(BaseModel):
    """User fields safe to return to clients (never the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str


class AuthResponse(BaseModel):
    """Response for successful sign-up and sign-in."""

    message: str
    user: UserPublic


class MessageResponse(BaseModel):
    """Plain message response (sign-out)."""

    message: str


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserPublic]
