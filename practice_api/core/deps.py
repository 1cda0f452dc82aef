from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from practice_api.core.settings import get_app_settings
from practice_api.db.models import ALL_MODELS
from practice_api.db.session import get_async_session
from practice_api.isolation import (
    EntityRegistry,
    InvalidScopeArgument,
    IsolationGuard,
    SkipRegistry,
    TenantScope,
    build_entity_registry,
)
from practice_api.repositories import RepositoryFactory

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_skip_registry() -> SkipRegistry:
    """Process-wide skip registry, built once from settings."""
    return SkipRegistry.from_settings(get_app_settings())


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_entity_registry() -> EntityRegistry:
    """Process-wide, frozen registry of every entity type served through guarded repositories."""
    registry = build_entity_registry(ALL_MODELS, get_skip_registry())
    logger.info("Tenant-guarded entity types: %s", ", ".join(sorted(registry.guarded())))
    return registry


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_isolation_guard() -> IsolationGuard:
    """Process-wide isolation guard."""
    return IsolationGuard(get_skip_registry())


# PUBLIC_INTERFACE
async def get_tenant_scope(
    x_firm_id: Optional[str] = Header(default=None, alias="X-Firm-ID"),
    x_lawyer_id: Optional[str] = Header(default=None, alias="X-Lawyer-ID"),
) -> TenantScope:
    """
    Resolve the request's tenant scope from the X-Firm-ID or X-Lawyer-ID header.

    Firm members send X-Firm-ID; solo lawyers send X-Lawyer-ID with their own user id.

    Raises:
        HTTPException: 400 Bad Request if neither or both headers are present.
    Returns:
        TenantScope: the scope every data call in this request must carry
    """
    if x_firm_id and x_lawyer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Send only one of X-Firm-ID or X-Lawyer-ID.",
        )
    try:
        return TenantScope(firm_id=x_firm_id or None, lawyer_id=x_lawyer_id or None)
    except InvalidScopeArgument:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Firm-ID or X-Lawyer-ID header is required.",
        )


# PUBLIC_INTERFACE
async def get_repositories(
    session: AsyncSession = Depends(get_async_session),
) -> RepositoryFactory:
    """
    Provide guarded repositories for the request.

    Routes depend on this instead of a raw session so every data call passes
    through the tenant isolation guard.
    """
    return RepositoryFactory(session, get_isolation_guard(), get_entity_registry())
