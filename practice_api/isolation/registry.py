"""
Process-wide isolation configuration: which entity types exist and which are
exempt from enforcement. Both are built once at startup and never mutated.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional

from .errors import UnregisteredEntityError
from .predicates import TENANT_KEYS

logger = logging.getLogger(__name__)

# Identity, session and firm records are global: no single tenant owns them.
DEFAULT_SKIP_ENTITIES: FrozenSet[str] = frozenset({"User", "Session", "Firm"})


def entity_name(entity: Any) -> str:
    """Resolve an entity type (model class or name) to its registry name."""
    if isinstance(entity, str):
        return entity
    return getattr(entity, "__name__", type(entity).__name__)


class SkipRegistry:
    """
    Immutable allow-list of entity type names exempt from tenant enforcement.

    Unknown names are not exempt: enforcement applies by default.
    """

    __slots__ = ("_names",)

    def __init__(self, names: Iterable[str] = DEFAULT_SKIP_ENTITIES) -> None:
        self._names: FrozenSet[str] = frozenset(names)

    @classmethod
    def from_settings(cls, settings: Any) -> "SkipRegistry":
        """Default skip list plus ISOLATION_EXTRA_SKIP_ENTITIES from application settings."""
        extra = getattr(settings, "ISOLATION_EXTRA_SKIP_ENTITIES", None) or []
        if extra:
            logger.info("Extra entity types exempt from tenant isolation: %s", ", ".join(sorted(extra)))
        return cls(DEFAULT_SKIP_ENTITIES | frozenset(extra))

    def __contains__(self, entity: Any) -> bool:
        return entity_name(entity) in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> FrozenSet[str]:
        return self._names


class EntityRegistry:
    """
    Name -> model class registry of entity types the guarded repositories may serve.

    Registration happens at startup; `freeze()` closes it.
    """

    def __init__(self, skip_registry: SkipRegistry) -> None:
        self._skip_registry = skip_registry
        self._entities: Dict[str, Any] = {}
        self._frozen = False

    # PUBLIC_INTERFACE
    def register(self, model: Any) -> Any:
        """
        Register a model class. Usable as a class decorator.

        Raises:
            RuntimeError: if the registry is frozen.
            ValueError: if the model is not skip-listed and has no tenant column,
                or if a different model is already registered under the same name.
        """
        if self._frozen:
            raise RuntimeError("Entity registry is frozen; register entity types at startup.")
        name = entity_name(model)
        existing = self._entities.get(name)
        if existing is not None and existing is not model:
            raise ValueError(f"Entity type {name!r} is already registered")
        if name not in self._skip_registry and not tenant_columns(model):
            raise ValueError(
                f"Entity type {name!r} has neither firm_id nor lawyer_id and is not skip-listed; "
                "it cannot be tenant-guarded."
            )
        self._entities[name] = model
        return model

    def freeze(self) -> "EntityRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def skip_registry(self) -> SkipRegistry:
        return self._skip_registry

    def get(self, entity: Any) -> Any:
        """Return the registered model for a model class or entity name."""
        name = entity_name(entity)
        model = self._entities.get(name)
        if model is None or (not isinstance(entity, str) and model is not entity):
            raise UnregisteredEntityError(f"Entity type {name!r} is not registered for guarded access")
        return model

    def __contains__(self, entity: Any) -> bool:
        return entity_name(entity) in self._entities

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entities))

    def guarded(self) -> FrozenSet[str]:
        """Names of registered entity types that are subject to enforcement."""
        return frozenset(n for n in self._entities if n not in self._skip_registry)


def tenant_columns(model: Any) -> FrozenSet[str]:
    """Tenant-owner columns present on a mapped model."""
    table = getattr(model, "__table__", None)
    if table is None:
        return frozenset()
    return frozenset(key for key in TENANT_KEYS if key in table.c)


def build_entity_registry(models: Iterable[Any], skip_registry: Optional[SkipRegistry] = None) -> EntityRegistry:
    """Register all `models` and return the frozen registry."""
    registry = EntityRegistry(skip_registry or SkipRegistry())
    for model in models:
        registry.register(model)
    return registry.freeze()
