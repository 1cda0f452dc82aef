from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import Timestamps


class CaseCreate(BaseModel):
    """Payload for opening a case. Ownership comes from the request scope, never the body."""
    title: str = Field(..., min_length=1, description="Case title")
    status: str = Field("open", description="Case status")
    category: Optional[str] = Field(default=None, description="Practice area")
    client_id: Optional[str] = Field(default=None, description="Client the case is handled for")


class CaseRead(Timestamps):
    model_config = ConfigDict(from_attributes=True)

    id: str
    firm_id: Optional[str] = None
    lawyer_id: Optional[str] = None
    title: str
    status: str
    category: Optional[str] = None
    client_id: Optional[str] = None
