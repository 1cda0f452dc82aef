from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from practice_api.db.base import Base, IdPkMixin, TimestampMixin


class Firm(IdPkMixin, TimestampMixin, Base):
    """A multi-member law firm; the tenant for its members' records."""
    __tablename__ = "firms"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)


class User(IdPkMixin, TimestampMixin, Base):
    """
    Platform identity. A user with no firm is a solo lawyer and acts as their own tenant.

    Global record: looked up across tenants (login, password reset), so skip-listed.
    """
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="lawyer")
    firm_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("firms.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Session(IdPkMixin, TimestampMixin, Base):
    """Login session for a user."""
    __tablename__ = "sessions"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
