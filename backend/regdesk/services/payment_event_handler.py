"""Payment Event Handler — routes an admitted provider event to the right service.

Invariants:
    - Thin payloads are resolved through the PaymentGateway before any field
      other than the id is read
    - Payment success (immediate or delayed) → FulfillmentService.fulfill
    - Full refunds → OrderService.refund_by_charge_ref; partial refunds are logged
    - Expired checkout sessions cancel the order only if still PENDING_PAYMENT
    - Unknown event types are acknowledged and logged, never errors

Design Decisions:
    - Runs inside PaymentEventGuard.process(): any exception raised here is
      recorded on the ledger as FAILED
"""

import logging
from uuid import UUID

from regdesk.core.errors import ErrorContext, ValidationError
from regdesk.core.payment_events import (
    ASYNC_PAYMENT_FAILED, CHARGE_REFUNDED, CHECKOUT_COMPLETED, CHECKOUT_EXPIRED,
    PaymentEvent, is_fulfillment_event, is_full_refund, is_payment_pending,
    is_thin_payload, with_resolved_object,
)
from regdesk.core.repository_protocols import PaymentGateway
from regdesk.services.fulfillment import FulfillmentService
from regdesk.services.orders import OrderService

logger = logging.getLogger(__name__)


def _order_id(event: PaymentEvent) -> UUID | None:
    if not event.order_ref:
        return None
    try:
        return UUID(event.order_ref)
    except ValueError:
        raise ValidationError(
            f"Order reference '{event.order_ref}' is not a valid id",
            "metadata.orderId",
            ErrorContext(event_id=event.id),
        )


class PaymentEventHandler:
    """Dispatches provider events to fulfillment, refunds and cancellations."""

    def __init__(
        self,
        gateway: PaymentGateway,
        fulfillment: FulfillmentService,
        orders: OrderService,
    ):
        self.gateway = gateway
        self.fulfillment = fulfillment
        self.orders = orders

    async def handle(self, event: PaymentEvent) -> None:
        event = await self.resolve(event)
        extra = {"event_id": event.id, "event_type": event.type}

        if is_fulfillment_event(event.type):
            await self._on_payment_succeeded(event)
        elif event.type == CHARGE_REFUNDED:
            await self._on_charge_refunded(event)
        elif event.type == CHECKOUT_EXPIRED:
            await self._on_checkout_expired(event)
        elif event.type == ASYNC_PAYMENT_FAILED:
            logger.warning(
                "Delayed payment failed; order stays pending until the session expires",
                extra=extra,
            )
        else:
            logger.info(f"Unhandled payment event type {event.type}", extra=extra)

    async def resolve(self, event: PaymentEvent) -> PaymentEvent:
        if not is_thin_payload(event.object):
            return event
        logger.info(
            "Thin payload; resolving full object",
            extra={"event_id": event.id, "event_type": event.type},
        )
        full = await self.gateway.resolve_full(event.type, event.object)
        return with_resolved_object(event, full)

    async def _on_payment_succeeded(self, event: PaymentEvent) -> None:
        order_id = _order_id(event)
        if order_id is None:
            logger.warning(
                "Payment event without order reference; acknowledged",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return
        if event.type == CHECKOUT_COMPLETED and is_payment_pending(event.object):
            logger.info(
                "Checkout completed with delayed payment; awaiting settlement",
                extra={"event_id": event.id, "order_id": order_id},
            )
            return
        await self.fulfillment.fulfill(
            order_id, event.object.get("id"), event.charge_ref,
        )

    async def _on_charge_refunded(self, event: PaymentEvent) -> None:
        if not event.charge_ref:
            raise ValidationError(
                "Refund event carries no charge reference", "payment_intent",
                ErrorContext(event_id=event.id),
            )
        if not is_full_refund(event.object):
            logger.info(
                "Partial refund; order left PAID",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return
        await self.orders.refund_by_charge_ref(event.charge_ref)

    async def _on_checkout_expired(self, event: PaymentEvent) -> None:
        order_id = _order_id(event)
        if order_id is None:
            logger.info(
                "Expired session without order reference; acknowledged",
                extra={"event_id": event.id},
            )
            return
        await self.orders.cancel_if_pending(order_id, "checkout session expired")
