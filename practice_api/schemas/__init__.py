"""
Public Pydantic schemas used by FastAPI routes and tests.

Schemas are grouped by domain module (legal, billing) plus common reusable
models such as the error envelope and standard responses.
"""

from .common import ErrorResponse, MessageResponse, ScopeEcho  # noqa: F401
