"""Password hashing and JWT creation/verification for authentication."""

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Bcrypt cost (log rounds) used when no settings override is given.
BCRYPT_ROUNDS = 10

# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72


class HashingError(Exception):
    """Raised when the password could not be hashed."""

    def __init__(self, message: str = "Password hashing failed") -> None:
        self.message = message
        super().__init__(message)


class VerificationError(Exception):
    """Raised when a password comparison fails for a reason other than a mismatch."""

    def __init__(self, message: str = "Password comparison failed") -> None:
        self.message = message
        super().__init__(message)


class SigningError(Exception):
    """Raised when an access token cannot be signed."""

    def __init__(self, message: str = "Token signing failed") -> None:
        self.message = message
        super().__init__(message)


class InvalidTokenError(Exception):
    """Raised when a token signature or payload is invalid."""

    def __init__(self, message: str = "Invalid token") -> None:
        self.message = message
        super().__init__(message)


class TokenExpiredError(InvalidTokenError):
    """Raised when a token was valid but its exp claim has passed."""

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    try:
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except Exception as e:
        logger.error("Password hashing error: %s", e.__class__.__name__)
        raise HashingError() from e


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash.

    A mismatch returns False. A malformed hash or library fault raises
    VerificationError.
    """
    try:
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except Exception as e:
        logger.error("Password comparison error: %s", e.__class__.__name__)
        raise VerificationError() from e


def create_access_token(
    claims: dict[str, Any],
    settings: "Settings",
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT carrying the identity claims (id, email, role) plus sub, iat and exp.

    Raises SigningError when the secret is missing or PyJWT fails.
    """
    secret = settings.JWT_SECRET.get_secret_value() if settings.JWT_SECRET else ""
    if not secret:
        logger.error("JWT signing secret is not configured")
        raise SigningError("Token signing secret is not configured")

    now = datetime.now(UTC)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "id": claims["id"],
        "email": claims["email"],
        "role": claims["role"],
        "sub": str(claims["id"]),
        "iat": now,
        "exp": now + expires_delta,
    }
    try:
        return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)
    except Exception as e:
        logger.error("JWT signing error: %s", e.__class__.__name__)
        raise SigningError() from e


def decode_access_token(token: str, settings: "Settings") -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (id, email, role, sub, iat, exp).
    Raises TokenExpiredError when expired, InvalidTokenError otherwise.
    """
    secret = settings.JWT_SECRET.get_secret_value()
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError() from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError() from e
    if not all(key in payload for key in ("id", "email", "role")):
        raise InvalidTokenError("Invalid token payload")
    return payload


def token_claims(payload: dict[str, Any]) -> dict[str, Any]:
    """Strip registered claims from a decoded payload, leaving {id, email, role}."""
    return {"id": payload["id"], "email": payload["email"], "role": payload["role"]}
