"""Waitlist Offer Manager — verifies FIFO offers, exclusive expiry and acceptance.

Tests:
    - Joining twice returns the same entry
    - Freed capacity is offered to the earliest entry, with a notification
    - Three entries are offered strictly in join order across a decline and an expiry
    - Accepting at exactly offered_until fails; the next entry is offered
    - Accepting in time creates a PENDING_PAYMENT order; repeating returns it
    - Only one offer is outstanding per item, even with several free seats
    - Declining advances the queue; declining twice is a no-op
    - The sweep expires overdue offers nobody touched
    - Seats with nobody waiting go back to general sale
"""

from datetime import timedelta

import pytest

from regdesk.core.domain_types import OrderStatus, RegistrationStatus, WaitlistStatus
from regdesk.core.errors import InvalidTransitionError, OfferExpiredError
from regdesk.core.waitlist_state import as_utc
from regdesk.services.loaders import load_entry, load_item
from regdesk.services.waitlist import OFFER_TEMPLATE


@pytest.fixture
async def queue(waitlist, clock, people, event_item):
    """Bob then Carl waiting for the event, one minute apart."""
    _, _, bob, carl = people
    bob_entry = (await waitlist.enqueue(event_item.id, bob.id)).entry
    clock.advance(minutes=1)
    carl_entry = (await waitlist.enqueue(event_item.id, carl.id)).entry
    clock.advance(minutes=1)
    return bob_entry, carl_entry


async def _status(test_db, entry) -> str:
    return (await load_entry(test_db, entry.id)).status


async def test_enqueue_is_idempotent(waitlist, people, event_item):
    _, _, bob, _ = people
    first = await waitlist.enqueue(event_item.id, bob.id)
    second = await waitlist.enqueue(event_item.id, bob.id)

    assert first.created
    assert not second.created
    assert second.entry.id == first.entry.id
    assert first.entry.status == WaitlistStatus.QUEUED.value


async def test_refund_offers_seat_to_queue_head(
    orders, paid_event_order, queue, test_db, notifier, clock,
):
    bob_entry, carl_entry = queue

    await orders.refund_order(paid_event_order.id, "cannot attend")

    bob_entry = await load_entry(test_db, bob_entry.id)
    assert bob_entry.status == WaitlistStatus.OFFERED.value
    assert as_utc(bob_entry.offered_until) == clock.now + timedelta(hours=48)
    assert await _status(test_db, carl_entry) == WaitlistStatus.QUEUED.value

    offer = notifier.sent[-1]
    assert offer["template"] == OFFER_TEMPLATE
    assert offer["recipient_email"] == "bob@example.com"
    assert offer["language"] == "nb"
    assert offer["variables"]["itemTitle"] == "Midsummer Social"


async def test_accept_at_deadline_expires_and_advances(
    orders, waitlist, paid_event_order, queue, test_db, clock,
):
    bob_entry, carl_entry = queue
    await orders.refund_order(paid_event_order.id)
    clock.advance(hours=48)

    with pytest.raises(OfferExpiredError):
        await waitlist.accept_offer(bob_entry.id)

    assert await _status(test_db, bob_entry) == WaitlistStatus.EXPIRED.value
    carl_entry = await load_entry(test_db, carl_entry.id)
    assert carl_entry.status == WaitlistStatus.OFFERED.value
    assert as_utc(carl_entry.offered_until) == clock.now + timedelta(hours=48)

    order_id = await waitlist.accept_offer(carl_entry.id)
    order = await orders.get_order(order_id)
    assert order.purchaser_id == carl_entry.holder_id
    assert order.status == OrderStatus.PENDING_PAYMENT.value
    assert order.total_cents == 25_000


async def test_accept_in_time_creates_pending_order(
    orders, waitlist, paid_event_order, queue, test_db, clock, event_item,
):
    bob_entry, carl_entry = queue
    await orders.refund_order(paid_event_order.id)
    clock.advance(hours=47, minutes=59)

    order_id = await waitlist.accept_offer(bob_entry.id)

    entry = await load_entry(test_db, bob_entry.id)
    assert entry.status == WaitlistStatus.ACCEPTED.value
    assert entry.accepted_order_id == order_id
    assert entry.offered_until is None

    order = await orders.get_order(order_id)
    assert order.status == OrderStatus.PENDING_PAYMENT.value
    assert order.kind == "EVENT"
    assert [r.status for r in order.registrations] == [
        RegistrationStatus.PENDING_PAYMENT.value,
    ]
    assert order.registrations[0].holder_id == bob_entry.holder_id

    item = await load_item(test_db, event_item.id)
    assert item.released_seats == 0
    assert await _status(test_db, carl_entry) == WaitlistStatus.QUEUED.value

    assert await waitlist.accept_offer(bob_entry.id) == order_id


async def test_one_offer_outstanding_per_item(waitlist, queue, test_db, event_item):
    bob_entry, carl_entry = queue

    offered = await waitlist.release_capacity(event_item.id, 2)

    assert offered.id == bob_entry.id
    assert await _status(test_db, carl_entry) == WaitlistStatus.QUEUED.value
    assert await waitlist.offer_next(event_item.id) is None
    assert (await load_item(test_db, event_item.id)).released_seats == 2

    await waitlist.accept_offer(bob_entry.id)

    assert await _status(test_db, carl_entry) == WaitlistStatus.OFFERED.value
    assert (await load_item(test_db, event_item.id)).released_seats == 1


async def test_decline_advances_queue(waitlist, queue, test_db, event_item):
    bob_entry, carl_entry = queue
    await waitlist.release_capacity(event_item.id, 1)

    declined = await waitlist.decline_offer(bob_entry.id)

    assert declined.status == WaitlistStatus.DECLINED.value
    assert declined.resolved_at is not None
    assert await _status(test_db, carl_entry) == WaitlistStatus.OFFERED.value

    again = await waitlist.decline_offer(bob_entry.id)
    assert again.status == WaitlistStatus.DECLINED.value


async def test_leaving_the_queue_makes_no_offer(waitlist, queue, test_db, notifier):
    bob_entry, carl_entry = queue

    await waitlist.decline_offer(bob_entry.id)

    assert await _status(test_db, bob_entry) == WaitlistStatus.DECLINED.value
    assert await _status(test_db, carl_entry) == WaitlistStatus.QUEUED.value
    assert notifier.sent == []


async def test_declined_entry_cannot_accept(waitlist, queue):
    bob_entry, _ = queue
    await waitlist.decline_offer(bob_entry.id)

    with pytest.raises(InvalidTransitionError):
        await waitlist.accept_offer(bob_entry.id)


async def test_sweep_expires_and_promotes(waitlist, queue, test_db, clock, event_item):
    bob_entry, carl_entry = queue
    await waitlist.release_capacity(event_item.id, 1)

    clock.advance(hours=47)
    early = await waitlist.sweep_expired()
    assert (early.expired, early.offered) == (0, 0)

    clock.advance(hours=1)
    result = await waitlist.sweep_expired(event_item.id)

    assert (result.expired, result.offered) == (1, 1)
    assert await _status(test_db, bob_entry) == WaitlistStatus.EXPIRED.value
    assert await _status(test_db, carl_entry) == WaitlistStatus.OFFERED.value

    again = await waitlist.sweep_expired()
    assert (again.expired, again.offered) == (0, 0)


async def test_expired_offer_rejoins_as_new_entry(waitlist, queue, people, clock, event_item):
    bob_entry, _ = queue
    _, _, bob, _ = people
    await waitlist.release_capacity(event_item.id, 1)
    clock.advance(hours=48)
    await waitlist.sweep_expired()

    rejoined = await waitlist.enqueue(event_item.id, bob.id)

    assert rejoined.created
    assert rejoined.entry.id != bob_entry.id


async def test_seats_return_to_sale_when_nobody_waits(waitlist, test_db, event_item):
    assert await waitlist.release_capacity(event_item.id, 1) is None
    assert (await load_item(test_db, event_item.id)).released_seats == 0


async def test_last_expiry_returns_seat_to_sale(waitlist, test_db, clock, people, event_item):
    _, _, bob, _ = people
    entry = (await waitlist.enqueue(event_item.id, bob.id)).entry
    await waitlist.release_capacity(event_item.id, 1)
    clock.advance(hours=48)

    result = await waitlist.sweep_expired()

    assert result.expired == 1
    assert await _status(test_db, entry) == WaitlistStatus.EXPIRED.value
    assert (await load_item(test_db, event_item.id)).released_seats == 0


async def test_offer_notification_failure_keeps_offer(waitlist, queue, test_db, notifier, event_item):
    bob_entry, _ = queue
    notifier.fail = True

    offered = await waitlist.release_capacity(event_item.id, 1)

    assert offered.id == bob_entry.id
    assert await _status(test_db, bob_entry) == WaitlistStatus.OFFERED.value


async def test_offers_follow_join_order(waitlist, test_db, clock, people, event_item):
    _, anna, bob, carl = people
    entries = []
    for person in (anna, bob, carl):
        entries.append((await waitlist.enqueue(event_item.id, person.id)).entry)
        clock.advance(minutes=5)
    first, second, third = entries

    offered = await waitlist.release_capacity(event_item.id, 1)
    assert offered.id == first.id
    assert await _status(test_db, second) == WaitlistStatus.QUEUED.value

    await waitlist.decline_offer(first.id)
    assert await _status(test_db, second) == WaitlistStatus.OFFERED.value
    assert await _status(test_db, third) == WaitlistStatus.QUEUED.value

    clock.advance(hours=48)
    result = await waitlist.sweep_expired(event_item.id)

    assert (result.expired, result.offered) == (1, 1)
    assert await _status(test_db, second) == WaitlistStatus.EXPIRED.value
    assert await _status(test_db, third) == WaitlistStatus.OFFERED.value
