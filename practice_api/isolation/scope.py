from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .errors import InvalidScopeArgument
from .predicates import is_valid_scope

ScopeLike = Union["TenantScope", Mapping[str, Any], None]


@dataclass(frozen=True)
class TenantScope:
    """
    The tenant an operation is restricted to: a firm, or a solo lawyer acting as
    their own tenant. Exactly one of the two identifiers is set.

    Scope is supplied by the request-context resolver; this layer never derives it.
    """

    firm_id: Optional[str] = None
    lawyer_id: Optional[str] = None

    def __post_init__(self) -> None:
        # Blank identifiers count as absent, so key/value never pick an empty one
        for name in ("firm_id", "lawyer_id"):
            value = getattr(self, name)
            if isinstance(value, str) and not value.strip():
                object.__setattr__(self, name, None)
        if not is_valid_scope(self):
            raise InvalidScopeArgument(
                "Tenant scope requires exactly one non-empty firm_id or lawyer_id.",
                operation="scope",
            )

    @classmethod
    def for_firm(cls, firm_id: Any) -> "TenantScope":
        return cls(firm_id=str(firm_id))

    @classmethod
    def for_lawyer(cls, lawyer_id: Any) -> "TenantScope":
        return cls(lawyer_id=str(lawyer_id))

    # PUBLIC_INTERFACE
    @classmethod
    def coerce(cls, value: ScopeLike) -> "TenantScope":
        """
        Build a TenantScope from a scope or a mapping holding firm_id / lawyer_id.

        Raises:
            InvalidScopeArgument: for None, empty mappings, mappings with neither or
                both tenant keys populated, or unsupported types.
        """
        if isinstance(value, TenantScope):
            return value
        if not isinstance(value, Mapping) or not is_valid_scope(value):
            raise InvalidScopeArgument(
                "A tenant scope with exactly one of firm_id or lawyer_id is required.",
                operation="scope",
            )
        firm_id = value.get("firm_id")
        lawyer_id = value.get("lawyer_id")
        return cls(
            firm_id=str(firm_id) if firm_id is not None else None,
            lawyer_id=str(lawyer_id) if lawyer_id is not None else None,
        )

    @property
    def key(self) -> str:
        return "firm_id" if self.firm_id else "lawyer_id"

    @property
    def value(self) -> str:
        return self.firm_id or self.lawyer_id  # type: ignore[return-value]

    @property
    def is_solo(self) -> bool:
        return self.firm_id is None

    def as_filter(self) -> Dict[str, str]:
        """Filter fragment restricting a query to this tenant."""
        return {self.key: self.value}

    def apply(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a copy of `document` stamped with this tenant as its owner."""
        stamped = {k: v for k, v in document.items() if k not in ("firm_id", "lawyer_id")}
        stamped[self.key] = self.value
        return stamped

    def __str__(self) -> str:
        return f"{'firm' if self.firm_id else 'lawyer'}:{self.value}"
