from __future__ import annotations

from practice_api.repositories import RepositoryFactory


class BaseService:
    """
    Base class for services. Holds the guarded repository factory for use across entity types.

    Services should keep business logic and orchestration, delegating data access
    to repositories.
    """

    def __init__(self, repositories: RepositoryFactory) -> None:
        self.repositories = repositories
