"""ORM model for application users (sign-up, sign-in and role tiers)."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from app.models.base import Base

USER_ROLES = ("user", "admin")

ROLE_CHECK_SQL = "role IN ({})".format(", ".join(f"'{r}'" for r in USER_ROLES))


class User(Base):
    """
    User account keyed by a normalized (trimmed, lowercased) email.

    role: 'admin' or 'user'. The bcrypt hash lives in the `password` column and
    is only read back on the sign-in path.
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint(ROLE_CHECK_SQL, name="role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column("password", String(255), nullable=False)
    role = Column(String(32), nullable=False, default="user", server_default="user")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
