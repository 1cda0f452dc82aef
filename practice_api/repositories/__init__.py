"""
Repository layer for data access.

`RepositoryFactory` is the only way application code reaches entity data: it
hands out a tenant-guarded repository per registered entity type and never
exposes the underlying session.
"""
from __future__ import annotations

from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from practice_api.isolation import EntityRegistry, IsolationGuard
from .base import GuardedRepository


class RepositoryFactory:
    """Creates guarded repositories bound to one session."""

    def __init__(self, session: AsyncSession, guard: IsolationGuard, entities: EntityRegistry) -> None:
        self._session = session
        self._guard = guard
        self._entities = entities
        self._cache: Dict[str, GuardedRepository[Any]] = {}

    # PUBLIC_INTERFACE
    def for_entity(self, entity: Any) -> GuardedRepository[Any]:
        """
        Return the guarded repository for a registered model class or entity name.

        Raises:
            UnregisteredEntityError: if the entity type was not registered at startup.
        """
        model = self._entities.get(entity)
        repo = self._cache.get(model.__name__)
        if repo is None:
            repo = self._cache[model.__name__] = GuardedRepository(self._session, model, self._guard)
        return repo

    __getitem__ = for_entity


__all__ = ["GuardedRepository", "RepositoryFactory"]
