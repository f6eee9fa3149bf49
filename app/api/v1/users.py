"""Users resource (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.auth import require_admin
from app.core.database import get_db
from app.models.user import User
from app.schemas.auth import UserPublic, UsersListResponse

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[UserPublic, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all users without password hashes."""
    users = db.query(User).order_by(User.id).all()
    return UsersListResponse(users=[UserPublic.model_validate(u) for u in users])
