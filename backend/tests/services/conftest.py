"""Service test fixtures — services wired to the test session, fake clock and fakes.

Invariants:
    - All services share the single test session (one unit of work per test)
    - Clock is a FakeClock: offer expiry is driven by advancing it, never by sleeping
"""

import pytest

from regdesk.config import Settings
from regdesk.core.domain_types import OrderKind
from regdesk.services.fulfillment import FulfillmentService, platform_info
from regdesk.services.orders import OrderLineRequest, OrderService
from regdesk.services.payment_event_guard import PaymentEventGuard
from regdesk.services.payment_event_handler import PaymentEventHandler
from regdesk.services.tickets import TicketIssuer
from regdesk.services.waitlist import WaitlistManager


@pytest.fixture
def waitlist(test_db, notifier, clock):
    return WaitlistManager(test_db, notifier, offer_hours=48, clock=clock)


@pytest.fixture
def orders(test_db, notifier, waitlist, clock):
    return OrderService(test_db, notifier, waitlist, clock)


@pytest.fixture
def fulfillment(test_db, renderer, notifier, clock):
    return FulfillmentService(
        test_db, renderer, notifier, platform_info(Settings()), clock,
    )


@pytest.fixture
def issuer(test_db, clock):
    return TicketIssuer(test_db, clock)


@pytest.fixture
def guard(test_db, clock):
    return PaymentEventGuard(test_db, clock)


@pytest.fixture
def handler(gateway, fulfillment, orders):
    return PaymentEventHandler(gateway, fulfillment, orders)


@pytest.fixture
async def course_order(orders, tenant, people, course_items):
    """Submitted course-period order: Anna in both spring tracks, 2000.00 NOK."""
    purchaser, anna, _, _ = people
    order = await orders.create_draft_order(
        tenant.id, purchaser.id, OrderKind.COURSE_PERIOD,
        [OrderLineRequest(anna.id, item.id) for item in course_items],
    )
    return await orders.submit_order(order.id)


@pytest.fixture
async def paid_event_order(orders, fulfillment, tenant, people, event_item):
    """Anna holds the single seat of the event, paid."""
    purchaser, anna, _, _ = people
    order = await orders.create_draft_order(
        tenant.id, purchaser.id, OrderKind.EVENT,
        [OrderLineRequest(anna.id, event_item.id)],
    )
    await orders.submit_order(order.id)
    await fulfillment.fulfill(order.id, "cs_seed", "pi_seed")
    return await orders.get_order(order.id)
