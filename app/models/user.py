from __future__ import annotations

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.access import UserRole
from app.domain.identifiers import create_user_id
from app.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Account owned by the upstream auth service; mirrored for ownership checks."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: create_user_id()
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"), default=UserRole.PATIENT, nullable=False
    )
    phone_number: Mapped[str | None] = mapped_column(String(16), nullable=True)
