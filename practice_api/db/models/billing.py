from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Date, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from practice_api.db.base import Base, IdPkMixin, TenantOwnedMixin, TimestampMixin, single_owner_check


class Invoice(IdPkMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Client invoice."""
    __tablename__ = "invoices"
    __table_args__ = (single_owner_check(),)

    number: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    client_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True
    )
