"""
Create a user (e.g. first admin) without going through the HTTP API. Run from project root:
  python -m app.scripts.create_user NAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user "Ada Admin" admin@example.com s3cret-pass admin
"""
import argparse
import logging
import sys

from pydantic import ValidationError

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging import setup_logging
from app.core.security import HashingError
from app.schemas.auth import SignUpRequest
from app.services.auth import UserAlreadyExistsError, create_user
from app.services.validation import format_validation_errors, issues_from_pydantic

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a user account.")
    parser.add_argument("name", help="Display name (2-100 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (6-128 chars, letters and digits)")
    parser.add_argument("role", nargs="?", default="user", choices=["user", "admin"])
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    try:
        body = SignUpRequest(
            name=args.name, email=args.email, password=args.password, role=args.role
        )
    except ValidationError as e:
        for line in format_validation_errors(issues_from_pydantic(e.errors())):
            print(line, file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        user = create_user(
            db,
            settings,
            name=body.name,
            email=body.email,
            password=body.password,
            role=body.role,
        )
    except UserAlreadyExistsError:
        print(f"User '{body.email}' already exists.", file=sys.stderr)
        return 1
    except HashingError as e:
        logger.error("Could not create user: %s", e.message)
        return 1
    finally:
        db.close()

    print(f"Created user '{user.email}' (id {user.id}) with role '{user.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
