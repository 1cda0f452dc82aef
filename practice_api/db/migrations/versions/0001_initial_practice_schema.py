"""Initial practice schema.

- firms
- users
- sessions
- clients
- cases
- invoices
- leads

Tenant-owned tables carry firm_id and lawyer_id with a check that exactly
one of them is set.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _owner_columns() -> list:
    return [
        sa.Column("firm_id", sa.String(36), sa.ForeignKey("firms.id", ondelete="CASCADE"), nullable=True),
        sa.Column("lawyer_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
    ]


def _owner_indexes(table: str) -> None:
    op.create_index(f"ix_{table}_firm_id", table, ["firm_id"])
    op.create_index(f"ix_{table}_lawyer_id", table, ["lawyer_id"])


def _single_owner(table: str) -> sa.CheckConstraint:
    return sa.CheckConstraint("(firm_id IS NULL) <> (lawyer_id IS NULL)", name=f"ck_{table}_single_owner")


def upgrade() -> None:
    op.create_table(
        "firms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(120), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("firm_id", sa.String(36), sa.ForeignKey("firms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_firm_id", "users", ["firm_id"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        *_owner_columns(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        *_timestamps(),
        _single_owner("clients"),
    )
    _owner_indexes("clients")

    op.create_table(
        "cases",
        sa.Column("id", sa.String(36), primary_key=True),
        *_owner_columns(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        _single_owner("cases"),
    )
    _owner_indexes("cases")
    op.create_index("ix_cases_client_id", "cases", ["client_id"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        *_owner_columns(),
        sa.Column("number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("total", sa.Float(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        _single_owner("invoices"),
    )
    _owner_indexes("invoices")
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])

    op.create_table(
        "leads",
        sa.Column("id", sa.String(36), primary_key=True),
        *_owner_columns(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        *_timestamps(),
        _single_owner("leads"),
    )
    _owner_indexes("leads")


def downgrade() -> None:
    for table in ("leads", "invoices", "cases", "clients", "sessions", "users", "firms"):
        op.drop_table(table)
