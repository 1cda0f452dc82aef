from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, MetaData, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Standardized naming convention for alembic-friendly constraints/indexes.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base class with metadata naming conventions."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _new_id() -> str:
    return str(uuid4())


class IdPkMixin:
    """Mixin that provides a string UUID primary key generated client-side."""
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)


class TimestampMixin:
    """Mixin that provides created_at and updated_at timestamp columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class TenantOwnedMixin:
    """
    Mixin for tenant-owned records: owned either by a firm or by a solo lawyer.

    Pair with `single_owner_check()` in __table_args__ so exactly one owner is set.
    """
    firm_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("firms.id", ondelete="CASCADE"), nullable=True, index=True
    )
    lawyer_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )


def single_owner_check() -> CheckConstraint:
    """Exactly one of firm_id / lawyer_id is populated."""
    return CheckConstraint("(firm_id IS NULL) <> (lawyer_id IS NULL)", name="single_owner")
