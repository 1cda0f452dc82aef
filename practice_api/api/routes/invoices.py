from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from practice_api.core.deps import get_repositories, get_tenant_scope
from practice_api.db.models import Invoice
from practice_api.isolation import TenantScope
from practice_api.repositories import RepositoryFactory
from practice_api.schemas.billing import InvoiceStatusSummary

router = APIRouter(prefix="/invoices", tags=["Billing"])


# PUBLIC_INTERFACE
@router.get(
    "/summary",
    response_model=List[InvoiceStatusSummary],
    summary="Invoice summary by status",
    description="Count and total of the caller's invoices grouped by status.",
)
async def invoice_summary(
    scope: TenantScope = Depends(get_tenant_scope),
    repos: RepositoryFactory = Depends(get_repositories),
) -> List[InvoiceStatusSummary]:
    pipeline = [
        {"$match": scope.as_filter()},
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "total": {"$sum": "$total"}}},
        {"$sort": {"_id": 1}},
    ]
    rows = await repos.for_entity(Invoice).aggregate(pipeline)
    return [InvoiceStatusSummary(status=r["_id"], count=r["count"], total=r["total"]) for r in rows]
