"""
ORM models for firms, identities and tenant-owned practice records.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .tenancy import (  # noqa: F401
    Firm,
    User,
    Session,
)
from .legal import (  # noqa: F401
    Client,
    Case,
)
from .billing import (  # noqa: F401
    Invoice,
)
from .crm import (  # noqa: F401
    Lead,
)

# Every entity type served through guarded repositories.
ALL_MODELS = (Firm, User, Session, Client, Case, Invoice, Lead)
