from __future__ import annotations

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from practice_api.db.base import Base, IdPkMixin, TenantOwnedMixin, TimestampMixin, single_owner_check


class Lead(IdPkMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Prospective client."""
    __tablename__ = "leads"
    __table_args__ = (single_owner_check(),)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="new")
