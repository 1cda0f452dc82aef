from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from practice_api.core.deps import get_repositories, get_tenant_scope
from practice_api.db.models import Case
from practice_api.isolation import TenantScope
from practice_api.repositories import RepositoryFactory
from practice_api.schemas.legal import CaseCreate, CaseRead

router = APIRouter(prefix="/cases", tags=["Cases"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[CaseRead],
    summary="List cases",
    description="List cases owned by the caller's firm or solo practice, newest first.",
)
async def list_cases(
    scope: TenantScope = Depends(get_tenant_scope),
    repos: RepositoryFactory = Depends(get_repositories),
    case_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Max records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
) -> List[CaseRead]:
    """
    Return tenant-scoped cases.

    Returns:
        List[CaseRead]: Cases ordered by created_at desc.
    """
    filter = scope.as_filter()
    if case_status:
        filter["status"] = case_status
    cases = await repos.for_entity(Case).find(filter, sort=[("created_at", -1)], limit=limit, skip=offset)
    return [CaseRead.model_validate(c) for c in cases]


# PUBLIC_INTERFACE
@router.get(
    "/{case_id}",
    response_model=CaseRead,
    summary="Get case",
    description="Fetch a case by id. Cases owned by another tenant are reported as not found.",
)
async def get_case(
    case_id: str,
    scope: TenantScope = Depends(get_tenant_scope),
    repos: RepositoryFactory = Depends(get_repositories),
) -> CaseRead:
    case = await repos.for_entity(Case).find_by_id_within_scope(case_id, scope)
    if case is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found")
    return CaseRead.model_validate(case)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=CaseRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open case",
    description="Create a case owned by the caller's firm or solo practice.",
)
async def create_case(
    payload: CaseCreate,
    scope: TenantScope = Depends(get_tenant_scope),
    repos: RepositoryFactory = Depends(get_repositories),
) -> CaseRead:
    """
    Insert a case stamped with the request scope as its owner.

    Returns:
        CaseRead: The created case.
    """
    case = await repos.for_entity(Case).insert_one(scope.apply(payload.model_dump()))
    return CaseRead.model_validate(case)
