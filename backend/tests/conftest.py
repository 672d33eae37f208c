"""Root conftest — environment defaults plus shared database and seed fixtures.

Invariants:
    - Environment is set before any regdesk module reads settings
    - Every test gets a fresh in-memory SQLite database
    - Seed fixtures commit, so services see them through any session

Design Decisions:
    - SQLite in-memory: fast, no external dependency; partial unique indexes and
      ON CONFLICT DO NOTHING behave as on PostgreSQL for what we exercise
"""

import os

# Ensure tests never reach real collaborators
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from regdesk.core.domain_types import ItemKind  # noqa: E402
from regdesk.db.base import Base  # noqa: E402
import regdesk.models  # noqa: E402,F401
from regdesk.models.item import Item  # noqa: E402
from regdesk.models.person import Person  # noqa: E402
from regdesk.models.tenant import Tenant  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeClock, FakeGateway, FakeNotifier, FakeRenderer,
)

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


# ─── Collaborator fakes ──────────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def gateway():
    return FakeGateway()


# ─── Seed data ───────────────────────────────────────────────────

@pytest.fixture
async def tenant(test_db):
    tenant = Tenant(
        name="Oslo Dance Studio",
        slug="oslo-dance",
        legal_name="Oslo Dance Studio AS",
        organization_number="123456789",
        street="Storgata 1",
        postal_code="0155",
        city="Oslo",
        country="NO",
        contact_email="post@oslodance.example",
        vat_registered=False,
        vat_rate=Decimal("0"),
        currency="NOK",
        order_prefix="ODS",
    )
    test_db.add(tenant)
    await test_db.commit()
    return tenant


@pytest.fixture
async def people(test_db):
    """purchaser, anna, bob, carl — in that order."""
    persons = [
        Person(first_name="Pia", last_name="Purchaser", email="pia@example.com"),
        Person(first_name="Anna", last_name="Holm", email="anna@example.com"),
        Person(first_name="Bob", last_name="Berg", email="bob@example.com",
               preferred_language="nb"),
        Person(first_name="Carl", last_name="Dahl", email="carl@example.com"),
    ]
    test_db.add_all(persons)
    await test_db.commit()
    return persons


@pytest.fixture
async def course_items(test_db, tenant):
    """Two tracks of the spring course period, 1000.00 NOK each."""
    items = [
        Item(
            tenant_id=tenant.id, kind=ItemKind.COURSE_TRACK.value,
            title="Salsa Beginners", series_title="Spring 2026",
            unit_price_cents=100_000, capacity=20,
        ),
        Item(
            tenant_id=tenant.id, kind=ItemKind.COURSE_TRACK.value,
            title="Bachata Level 2", series_title="Spring 2026",
            unit_price_cents=100_000, capacity=20,
        ),
    ]
    test_db.add_all(items)
    await test_db.commit()
    return items


@pytest.fixture
async def event_item(test_db, tenant):
    """Sold-out style event: a single seat."""
    item = Item(
        tenant_id=tenant.id, kind=ItemKind.EVENT.value,
        title="Midsummer Social", unit_price_cents=25_000, capacity=1,
    )
    test_db.add(item)
    await test_db.commit()
    return item
