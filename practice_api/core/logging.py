from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Tuple, Union

# (firm_id, lawyer_id) exactly as the request supplied them
TenantHeaders = Tuple[Optional[str], Optional[str]]

# Context variables for enriched logging
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
tenant_var: ContextVar[Optional[TenantHeaders]] = ContextVar("tenant", default=None)


# PUBLIC_INTERFACE
def tenant_label(firm_id: Optional[str], lawyer_id: Optional[str]) -> Optional[str]:
    """
    Render the tenant a request claims as "firm:<id>" or "lawyer:<id>".

    Blank ids are ignored. When both are present the request is ambiguous and
    will be rejected, but both are kept so the log line shows what was sent.
    Returns None when neither id is present.
    """
    parts = [
        f"{kind}:{value.strip()}"
        for kind, value in (("firm", firm_id), ("lawyer", lawyer_id))
        if value and value.strip()
    ]
    return ",".join(parts) or None


class LoggingContextFilter(logging.Filter):
    """
    Logging filter that injects correlation_id and the tenant label from
    contextvars into each log record so formatters can include them.

    If no values are present in the context, placeholders are used.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        cid = correlation_id_var.get()
        headers = tenant_var.get()
        label = tenant_label(*headers) if headers else None
        setattr(record, "correlation_id", cid or "-")
        setattr(record, "tenant", label or "-")
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configure root logging with a structured format and context filter."""
    handler = logging.StreamHandler(stream=sys.stdout)
    fmt = (
        "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | tenant=%(tenant)s | "
        "%(message)s"
    )
    handler.setFormatter(logging.Formatter(fmt=fmt))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    # Remove pre-existing default handlers configured elsewhere (e.g., basicConfig)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
