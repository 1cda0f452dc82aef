from __future__ import annotations

from pydantic import BaseModel, Field


class InvoiceStatusSummary(BaseModel):
    """Invoice count and total for one status within the caller's scope."""
    status: str = Field(..., description="Invoice status")
    count: int = Field(..., ge=0, description="Number of invoices")
    total: float = Field(..., description="Sum of invoice totals")
