"""Payment Event Handler — verifies routing of provider events through the guard.

Tests:
    - checkout.session.completed fulfills the order referenced in metadata
    - Redelivery of the same event id changes nothing
    - Thin payloads are resolved through the gateway before use
    - Delayed-payment checkouts wait for async_payment_succeeded
    - Full refunds refund the order; partial refunds leave it PAID
    - checkout.session.expired cancels only PENDING_PAYMENT orders
    - Malformed order references are recorded as FAILED
"""

from regdesk.core.domain_types import (
    AdmissionOutcome, OrderStatus, RegistrationStatus, TicketStatus, WebhookStatus,
)
from regdesk.core.payment_events import parse_payment_event
from regdesk.services.fulfillment import CONFIRMATION_TEMPLATE
from regdesk.services.orders import REFUND_TEMPLATE


def _completed(order_id, event_id="evt_1", **extra) -> dict:
    obj = {
        "id": "cs_1",
        "object": "checkout.session",
        "metadata": {"orderId": str(order_id)},
        "payment_intent": "pi_1",
        "payment_status": "paid",
        **extra,
    }
    return {"id": event_id, "type": "checkout.session.completed", "data": {"object": obj}}


async def _deliver(guard, handler, body):
    return await guard.process(parse_payment_event(body), handler.handle)


async def test_checkout_completed_fulfills(guard, handler, orders, course_order, notifier):
    result = await _deliver(guard, handler, _completed(course_order.id))

    assert result.status == WebhookStatus.PROCESSED
    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PAID.value
    assert order.total_cents == 200_000
    assert order.order_number == "ODS-2026-00001"
    assert order.charge_ref == "pi_1"
    assert len(order.tickets) == 2
    assert notifier.templates() == [CONFIRMATION_TEMPLATE]


async def test_redelivery_changes_nothing(guard, handler, orders, course_order, notifier):
    await _deliver(guard, handler, _completed(course_order.id))
    again = await _deliver(guard, handler, _completed(course_order.id))

    assert again.outcome == AdmissionOutcome.ALREADY_PROCESSED
    order = await orders.get_order(course_order.id)
    assert len(order.tickets) == 2
    assert order.order_number == "ODS-2026-00001"
    assert len(notifier.sent) == 1


async def test_second_event_for_paid_order_is_noop(guard, handler, orders, course_order):
    await _deliver(guard, handler, _completed(course_order.id, "evt_1"))
    result = await _deliver(guard, handler, {
        **_completed(course_order.id, "evt_2"),
        "type": "checkout.session.async_payment_succeeded",
    })

    assert result.status == WebhookStatus.PROCESSED
    order = await orders.get_order(course_order.id)
    assert len(order.tickets) == 2


async def test_thin_payload_resolved_through_gateway(
    guard, handler, gateway, orders, course_order,
):
    full = _completed(course_order.id)["data"]["object"]
    gateway.objects["cs_1"] = full
    thin = {
        "id": "evt_thin", "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "object": "checkout.session"}},
    }

    result = await _deliver(guard, handler, thin)

    assert result.status == WebhookStatus.PROCESSED
    assert gateway.calls[0][0] == "checkout.session.completed"
    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PAID.value
    assert order.charge_ref == "pi_1"


async def test_delayed_payment_waits_for_settlement(guard, handler, orders, course_order):
    body = _completed(course_order.id, payment_status="unpaid")
    await _deliver(guard, handler, body)

    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PENDING_PAYMENT.value

    settled = {**_completed(course_order.id, "evt_2"),
               "type": "checkout.session.async_payment_succeeded"}
    await _deliver(guard, handler, settled)
    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PAID.value


async def test_missing_order_reference_acknowledged(guard, handler):
    body = {
        "id": "evt_x", "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_9", "object": "checkout.session", "payment_status": "paid",
            "metadata": {},
        }},
    }
    result = await _deliver(guard, handler, body)
    assert result.status == WebhookStatus.PROCESSED


async def test_malformed_order_reference_fails(guard, handler):
    result = await _deliver(guard, handler, _completed("not-a-uuid"))
    assert result.status == WebhookStatus.FAILED
    assert result.error.startswith("ValidationError:")


async def test_full_refund_refunds_order(guard, handler, orders, course_order, notifier):
    await _deliver(guard, handler, _completed(course_order.id))
    refund = {
        "id": "evt_r", "type": "charge.refunded",
        "data": {"object": {
            "id": "ch_1", "object": "charge", "payment_intent": "pi_1",
            "amount": 200_000, "amount_refunded": 200_000, "refunded": True,
        }},
    }

    result = await _deliver(guard, handler, refund)

    assert result.status == WebhookStatus.PROCESSED
    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.REFUNDED.value
    assert {r.status for r in order.registrations} == {RegistrationStatus.REFUNDED.value}
    assert {t.status for t in order.tickets} == {TicketStatus.VOID.value}
    assert notifier.templates() == [CONFIRMATION_TEMPLATE, REFUND_TEMPLATE]
    assert notifier.sent[1]["variables"]["creditNoteEligible"] == "true"


async def test_partial_refund_leaves_order_paid(guard, handler, orders, course_order):
    await _deliver(guard, handler, _completed(course_order.id))
    refund = {
        "id": "evt_r", "type": "charge.refunded",
        "data": {"object": {
            "id": "ch_1", "object": "charge", "payment_intent": "pi_1",
            "amount": 200_000, "amount_refunded": 50_000, "refunded": False,
        }},
    }

    await _deliver(guard, handler, refund)

    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PAID.value


async def test_refund_for_unknown_charge_fails(guard, handler):
    refund = {
        "id": "evt_r", "type": "charge.refunded",
        "data": {"object": {
            "id": "ch_404", "object": "charge", "payment_intent": "pi_404",
            "refunded": True,
        }},
    }
    result = await _deliver(guard, handler, refund)
    assert result.status == WebhookStatus.FAILED
    assert result.error.startswith("ResourceNotFoundError:")


async def test_expired_session_cancels_pending_order(guard, handler, orders, course_order):
    body = {
        "id": "evt_e", "type": "checkout.session.expired",
        "data": {"object": {
            "id": "cs_1", "object": "checkout.session",
            "metadata": {"orderId": str(course_order.id)}, "status": "expired",
        }},
    }

    await _deliver(guard, handler, body)

    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.CANCELLED.value


async def test_expired_session_after_payment_ignored(guard, handler, orders, course_order):
    await _deliver(guard, handler, _completed(course_order.id))
    body = {
        "id": "evt_e", "type": "checkout.session.expired",
        "data": {"object": {
            "id": "cs_1", "object": "checkout.session",
            "metadata": {"orderId": str(course_order.id)}, "status": "expired",
        }},
    }

    result = await _deliver(guard, handler, body)

    assert result.status == WebhookStatus.PROCESSED
    order = await orders.get_order(course_order.id)
    assert order.status == OrderStatus.PAID.value


async def test_completed_for_cancelled_order_fails(guard, handler, orders, course_order):
    await orders.cancel_order(course_order.id)

    result = await _deliver(guard, handler, _completed(course_order.id))

    assert result.status == WebhookStatus.FAILED
    assert result.error.startswith("InvalidStateError:")


async def test_unknown_event_type_acknowledged(guard, handler):
    body = {"id": "evt_u", "type": "customer.created",
            "data": {"object": {"id": "cus_1", "object": "customer", "email": "a@b.c", "name": "A"}}}
    result = await _deliver(guard, handler, body)
    assert result.status == WebhookStatus.PROCESSED
