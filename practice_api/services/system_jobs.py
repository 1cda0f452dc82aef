"""
Cross-tenant system operations.

These run outside any request scope (scheduled jobs, account recovery) and
are the only callers of the `*_without_scope` repository methods.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from practice_api.core.deps import get_entity_registry, get_isolation_guard
from practice_api.core.logging import configure_logging
from practice_api.core.settings import get_app_settings
from practice_api.db.models import Invoice, User
from practice_api.db.session import get_engine, make_session_factory
from practice_api.isolation import TenantScope
from practice_api.repositories import RepositoryFactory
from practice_api.services.base import BaseService

logger = logging.getLogger(__name__)

DUNNING_STATUSES = ("sent", "overdue")


@dataclass(frozen=True)
class OverdueDigest:
    """Overdue invoices owed to one tenant."""
    scope: TenantScope
    count: int
    total: float


class SystemJobsService(BaseService):
    """Scheduled and account-level jobs that must see every tenant's records."""

    # PUBLIC_INTERFACE
    async def mark_overdue_invoices(self, today: Optional[date] = None) -> int:
        """
        Flag sent invoices past their due date as overdue, across all tenants.

        Returns:
            Number of invoices updated.
        """
        today = today or date.today()
        result = await self.repositories.for_entity(Invoice).update_many_without_scope(
            {"status": "sent", "due_date": {"$lt": today}},
            {"$set": {"status": "overdue"}},
        )
        logger.info("Marked %d invoice(s) overdue as of %s", result.modified_count, today)
        return result.modified_count

    # PUBLIC_INTERFACE
    async def overdue_invoice_digest(self, today: Optional[date] = None) -> List[OverdueDigest]:
        """
        Count and total unpaid invoices past due, grouped per tenant.

        Returns:
            One OverdueDigest per firm or solo lawyer with overdue invoices,
            largest outstanding total first.
        """
        today = today or date.today()
        pipeline = [
            {"$match": {"status": {"$in": list(DUNNING_STATUSES)}, "due_date": {"$lt": today}}},
            {
                "$group": {
                    "_id": {"firm_id": "$firm_id", "lawyer_id": "$lawyer_id"},
                    "count": {"$sum": 1},
                    "total": {"$sum": "$total"},
                }
            },
            {"$sort": {"total": -1}},
        ]
        rows = await self.repositories.for_entity(Invoice).aggregate_without_scope(pipeline)
        digest = [
            OverdueDigest(scope=TenantScope(**row["_id"]), count=row["count"], total=float(row["total"]))
            for row in rows
        ]
        logger.info("Overdue invoice digest: %d tenant(s)", len(digest))
        return digest

    # PUBLIC_INTERFACE
    async def find_user_by_email(self, email: str) -> Optional[User]:
        """Look up a user across all tenants, e.g. for password reset. User is skip-listed."""
        return await self.repositories.for_entity(User).find_one({"email": email.strip().lower()})


JOBS = ("mark-overdue", "overdue-digest")


# PUBLIC_INTERFACE
async def run_job(
    job: str,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    today: Optional[date] = None,
) -> List[str]:
    """
    Run one system job in its own session and return its report lines.

    Parameters:
        job: "mark-overdue" or "overdue-digest"
        session_factory: sessions to run in; defaults to the configured database
        today: reference date for due-date checks; defaults to the current date
    Raises:
        ValueError: for an unknown job name.
    """
    if job not in JOBS:
        raise ValueError(f"Unknown system job: {job!r}")
    owns_engine = session_factory is None
    factory = session_factory or make_session_factory(get_engine())
    try:
        async with factory() as session:
            service = SystemJobsService(RepositoryFactory(session, get_isolation_guard(), get_entity_registry()))
            if job == "mark-overdue":
                count = await service.mark_overdue_invoices(today)
                return [f"marked {count} invoice(s) overdue"]
            return [
                f"{item.scope}\t{item.count}\t{item.total:.2f}"
                for item in await service.overdue_invoice_digest(today)
            ]
    finally:
        if owns_engine:
            await get_engine().dispose()


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line entry point for scheduled jobs.

    Usage:
        python -m practice_api.services.system_jobs mark-overdue [YYYY-MM-DD]
        python -m practice_api.services.system_jobs overdue-digest [YYYY-MM-DD]
    """
    args = list(sys.argv[1:] if argv is None else argv)
    usage = f"Usage: system_jobs {{{'|'.join(JOBS)}}} [YYYY-MM-DD]"
    if not args or args[0] not in JOBS or len(args) > 2:
        print(usage)
        return 1
    try:
        today = date.fromisoformat(args[1]) if len(args) == 2 else None
    except ValueError:
        print(f"Invalid date {args[1]!r}. {usage}")
        return 1

    configure_logging(get_app_settings().LOG_LEVEL)
    for line in asyncio.run(run_job(args[0], today=today)):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
