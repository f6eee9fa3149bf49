"""User sign-up and sign-in against the users table."""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import BCRYPT_ROUNDS, hash_password, verify_password
from app.models import User

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    """Hash checked when the email is unknown so both 401 paths run bcrypt."""
    return hash_password("no-such-user-placeholder-1", rounds=BCRYPT_ROUNDS)


class UserAlreadyExistsError(Exception):
    """Raised when an email is already registered."""

    def __init__(self, email: str) -> None:
        self.email = email
        self.message = "User already exists"
        super().__init__(self.message)


class InvalidCredentialsError(Exception):
    """Raised for an unknown email or a wrong password; callers cannot tell which."""

    def __init__(self) -> None:
        self.message = "Invalid email or password"
        super().__init__(self.message)


def find_user_by_email(db: Session, email: str) -> User | None:
    """Single lookup by normalized email."""
    return db.query(User).filter(User.email == email).first()


def insert_user(
    db: Session,
    *,
    name: str,
    email: str,
    password_hash: str,
    role: str,
) -> User:
    """
    Insert a user row and commit.

    The unique index on email is the authoritative check: a concurrent insert
    that wins the race surfaces here as IntegrityError, which is rolled back and
    reported as UserAlreadyExistsError.
    """
    user = User(name=name, email=email, password_hash=password_hash, role=role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if find_user_by_email(db, email) is None:
            # Not the email index (e.g. the role check); an infrastructure fault.
            logger.error("Insert rejected for email %s: %s", email, e.orig)
            raise
        logger.info("Unique constraint rejected insert for email %s", email)
        raise UserAlreadyExistsError(email) from e
    db.refresh(user)
    return user


def create_user(
    db: Session,
    settings: "Settings",
    *,
    name: str,
    email: str,
    password: str,
    role: str = "user",
) -> User:
    """Register a new user. Raises UserAlreadyExistsError if the email is taken."""
    if find_user_by_email(db, email) is not None:
        logger.info("Sign-up rejected: email already registered %s", email)
        raise UserAlreadyExistsError(email)

    password_hash = hash_password(password, rounds=settings.BCRYPT_ROUNDS)
    user = insert_user(
        db, name=name, email=email, password_hash=password_hash, role=role
    )
    logger.info("New user created with id: %s, email: %s", user.id, user.email)
    return user


def authenticate_user(db: Session, *, email: str, password: str) -> User:
    """Return the user for valid credentials. Raises InvalidCredentialsError otherwise."""
    user = find_user_by_email(db, email)
    if user is None:
        verify_password(password, _dummy_password_hash())
        logger.info("Authentication failed: user not found for email %s", email)
        raise InvalidCredentialsError()

    if not verify_password(password, user.password_hash):
        logger.info("Authentication failed: invalid password for email %s", email)
        raise InvalidCredentialsError()

    logger.info("User authenticated with id: %s, email: %s", user.id, user.email)
    return user
