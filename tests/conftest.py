"""Shared fixtures: an in-memory SQLite database seeded with two firms and one solo lawyer."""
import os
from datetime import date

# Settings are read at import time by the app module.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from practice_api.db.base import Base
from practice_api.db.models import ALL_MODELS, Case, Client, Firm, Invoice, Lead, User
from practice_api.db.session import make_session_factory
from practice_api.isolation import IsolationGuard, SkipRegistry, build_entity_registry
from practice_api.repositories import RepositoryFactory

F1 = "firm-0001"
F2 = "firm-0002"
L1 = "lawyer-0001"
FIRM_MEMBER = "user-0001"


def _seed_rows():
    return [
        Firm(id=F1, name="Hale & Partners", slug="hale-partners"),
        Firm(id=F2, name="Okafor Legal", slug="okafor-legal"),
        User(id=FIRM_MEMBER, email="ada@hale.test", full_name="Ada Hale", firm_id=F1),
        User(id=L1, email="solo@lawyer.test", full_name="Sam Solo", firm_id=None),
        Client(id="client-f1", firm_id=F1, name="Jane Doe"),
        Client(id="client-f2", firm_id=F2, name="Acme Ltd"),
        Client(id="client-l1", lawyer_id=L1, name="Rita Ray"),
        Case(id="case-f1", firm_id=F1, title="Estate of Doe", status="open", client_id="client-f1"),
        Case(id="case-f2", firm_id=F2, title="Acme v. Beta", status="closed", client_id="client-f2"),
        Case(id="case-l1", lawyer_id=L1, title="Ray tenancy dispute", status="open", client_id="client-l1"),
        Invoice(id="123", firm_id=F1, number="F1-001", status="paid", total=100.0),
        Invoice(id="inv-f1-sent", firm_id=F1, number="F1-002", status="sent", total=250.0, due_date=date(2026, 1, 10)),
        Invoice(id="inv-f1-draft", firm_id=F1, number="F1-003", status="draft", total=40.0),
        Invoice(id="inv-f2-paid", firm_id=F2, number="F2-001", status="paid", total=300.0),
        Invoice(id="inv-f2-overdue", firm_id=F2, number="F2-002", status="overdue", total=500.0, due_date=date(2026, 2, 1)),
        Invoice(id="inv-l1-sent", lawyer_id=L1, number="L1-001", status="sent", total=75.0, due_date=date(2026, 3, 1)),
        Lead(id="lead-f1", firm_id=F1, name="Referral from Doe", source="referral"),
        Lead(id="lead-l1", lawyer_id=L1, name="Walk-in", source="office"),
    ]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = make_session_factory(engine)
    async with factory() as seed_session:
        seed_session.add_all(_seed_rows())
        await seed_session.commit()
    async with factory() as s:
        yield s


@pytest.fixture
def skip_registry():
    return SkipRegistry()


@pytest.fixture
def guard(skip_registry):
    return IsolationGuard(skip_registry)


@pytest.fixture
def entities(skip_registry):
    return build_entity_registry(ALL_MODELS, skip_registry)


@pytest.fixture
def repos(session, guard, entities):
    return RepositoryFactory(session, guard, entities)
