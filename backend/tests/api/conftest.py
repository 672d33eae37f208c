"""API test fixtures — FastAPI app with DB and collaborators overridden.

Invariants:
    - get_db yields sessions from the per-test in-memory engine
    - Collaborator getters return the same fakes the test asserts against
    - The clock dependency is the test's FakeClock

Design Decisions:
    - ASGITransport without lifespan: the app never builds its own engine
    - db_manager patched so the readiness probe checks the test engine
"""

import pytest
from httpx import ASGITransport, AsyncClient

import regdesk.infrastructure.database as db_module
from regdesk.api.dependencies import (
    get_clock, get_notification_sender, get_payment_gateway, get_receipt_renderer,
)
from regdesk.infrastructure.database import DatabaseSessionManager, get_db
from regdesk.main import app


@pytest.fixture
async def client(test_engine, test_session_factory, clock, notifier, renderer, gateway):
    """FastAPI test client with DB and collaborator dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notification_sender] = lambda: notifier
    app.dependency_overrides[get_receipt_renderer] = lambda: renderer
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def course_order_body(tenant, people, course_items) -> dict:
    purchaser, anna, _, _ = people
    return {
        "tenant_id": str(tenant.id),
        "purchaser_id": str(purchaser.id),
        "kind": "COURSE_PERIOD",
        "lines": [
            {"holder_id": str(anna.id), "item_id": str(item.id)}
            for item in course_items
        ],
    }


@pytest.fixture
async def pending_order(client, course_order_body) -> dict:
    created = await client.post("/api/v1/orders", json=course_order_body)
    assert created.status_code == 201
    submitted = await client.post(f"/api/v1/orders/{created.json()['id']}/submit")
    assert submitted.status_code == 200
    return submitted.json()
