from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from practice_api.db.base import Base, IdPkMixin, TenantOwnedMixin, TimestampMixin, single_owner_check


class Client(IdPkMixin, TenantOwnedMixin, TimestampMixin, Base):
    """A client of a firm or solo lawyer."""
    __tablename__ = "clients"
    __table_args__ = (single_owner_check(),)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")


class Case(IdPkMixin, TenantOwnedMixin, TimestampMixin, Base):
    """A legal matter handled for a client."""
    __tablename__ = "cases"
    __table_args__ = (single_owner_check(),)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True
    )
