"""Order Service — draft creation, submission, cancellation and refunds.

Invariants:
    - Every status change goes through core/order_state.py checks first
    - Totals are snapshotted once, on DRAFT → PENDING_PAYMENT
    - Submission reserves capacity: seats held by PENDING_PAYMENT/ACTIVE
      registrations plus seats reserved for the waitlist never exceed capacity
    - Cancelling or refunding releases seats to the waitlist only AFTER the
      status change is committed
    - Refunds void tickets and send an `order-refunded` notification marked
      credit-note eligible; notification failure is logged only
    - A PENDING_PAYMENT order is never partially cancelled: its frozen total
      always matches its live registrations

Design Decisions:
    - Cancelling the last live registration of an order closes the order
      (CANCELLED before payment, REFUNDED after), so an order never stays
      PAID with nothing in it
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.domain_types import (
    ORDER_KIND_FOR_ITEM, ItemKind, OrderKind, OrderStatus, RegistrationStatus,
)
from regdesk.core.errors import (
    CapacityExceededError, ErrorContext, ResourceNotFoundError, ValidationError,
)
from regdesk.core.money import LineItem, calculate_totals, format_amount
from regdesk.core.order_state import (
    SEAT_HOLDING_STATUSES, assert_totals_mutable, cascade_status,
    check_order_transition, check_registration_transition, holds_seat,
)
from regdesk.core.repository_protocols import NotificationSender
from regdesk.models.order import Order
from regdesk.models.registration import Registration
from regdesk.services import utc_now
from regdesk.services.loaders import (
    load_item, load_order, load_person, load_registration, load_tenant,
)
from regdesk.services.tickets import TicketIssuer
from regdesk.services.waitlist import WaitlistManager

logger = logging.getLogger(__name__)

REFUND_TEMPLATE = "order-refunded"


@dataclass(frozen=True)
class OrderLineRequest:
    holder_id: UUID
    item_id: UUID
    quantity: int = 1


class OrderService:
    """Order lifecycle outside of payment confirmation (see fulfillment.py)."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSender,
        waitlist: WaitlistManager,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.notifier = notifier
        self.waitlist = waitlist
        self.clock = clock
        self.tickets = TicketIssuer(db, clock)

    async def get_order(self, order_id: UUID) -> Order:
        return await load_order(self.db, order_id)

    # ─── Draft & submission ──────────────────────────────────────

    async def create_draft_order(
        self,
        tenant_id: UUID,
        purchaser_id: UUID,
        kind: OrderKind,
        lines: list[OrderLineRequest],
        discount_cents: int = 0,
    ) -> Order:
        if not lines:
            raise ValidationError("An order needs at least one line", "lines")
        if discount_cents < 0:
            raise ValidationError("Discount cannot be negative", "discount_cents")
        tenant = await load_tenant(self.db, tenant_id)
        await load_person(self.db, purchaser_id)

        registrations = []
        priced = []
        for line in lines:
            item = await load_item(self.db, line.item_id)
            await load_person(self.db, line.holder_id)
            if item.tenant_id != tenant_id:
                raise ValidationError(
                    f"Item {item.id} belongs to another tenant", "item_id",
                )
            if ORDER_KIND_FOR_ITEM[ItemKind(item.kind)] != kind:
                raise ValidationError(
                    f"Item {item.id} ({item.kind}) cannot be sold in a {kind.value} order",
                    "item_id",
                )
            if line.quantity < 1:
                raise ValidationError("Quantity must be at least 1", "quantity")
            if kind == OrderKind.COURSE_PERIOD and line.quantity != 1:
                raise ValidationError(
                    "Course registrations are for exactly one seat", "quantity",
                )
            registrations.append(Registration(
                holder_id=line.holder_id,
                item_id=item.id,
                status=RegistrationStatus.DRAFT.value,
                quantity=line.quantity,
                unit_price_cents=item.unit_price_cents,
            ))
            priced.append(LineItem(item.title, line.quantity, item.unit_price_cents))

        order = Order(
            tenant_id=tenant_id,
            purchaser_id=purchaser_id,
            kind=kind.value,
            status=OrderStatus.DRAFT.value,
            requested_discount_cents=discount_cents,
            registrations=registrations,
        )
        order.snapshot_totals(calculate_totals(
            priced,
            discount_cents,
            tenant.effective_vat_rate,
            tenant.currency,
        ))
        self.db.add(order)
        await self.db.commit()
        logger.info("Draft order created", extra={"order_id": order.id})
        return await load_order(self.db, order.id)

    async def submit_order(self, order_id: UUID) -> Order:
        """DRAFT → PENDING_PAYMENT: reserve seats and freeze the totals."""
        context = ErrorContext(order_id=str(order_id))
        order = await load_order(self.db, order_id)
        status = OrderStatus(order.status)
        check_order_transition(status, OrderStatus.PENDING_PAYMENT, context)
        assert_totals_mutable(status, context)

        live = [
            r for r in order.registrations
            if r.status == RegistrationStatus.DRAFT.value
        ]
        if not live:
            raise ValidationError("Order has no registrations to submit", "registrations")
        await self._check_capacity(live)

        await self._snapshot_totals(order, live)
        target = cascade_status(OrderStatus.PENDING_PAYMENT)
        for registration in live:
            check_registration_transition(
                RegistrationStatus(registration.status), target,
                OrderStatus.PENDING_PAYMENT, context,
            )
            registration.status = target.value
        order.status = OrderStatus.PENDING_PAYMENT.value
        order.submitted_at = self.clock()
        await self.db.commit()
        logger.info(
            f"Order submitted, total {format_amount(order.total_cents, order.currency)}",
            extra={"order_id": order_id},
        )
        return await load_order(self.db, order_id)

    async def _snapshot_totals(
        self, order: Order, registrations: list[Registration],
    ) -> None:
        tenant = await load_tenant(self.db, order.tenant_id)
        order.snapshot_totals(calculate_totals(
            [
                LineItem(
                    r.item.title,
                    r.quantity,
                    r.unit_price_cents if r.unit_price_cents is not None
                    else r.item.unit_price_cents,
                )
                for r in registrations
            ],
            order.requested_discount_cents,
            tenant.effective_vat_rate,
            tenant.currency,
        ))

    async def _check_capacity(self, registrations: list[Registration]) -> None:
        requested = Counter()
        for r in registrations:
            requested[r.item_id] += r.quantity
        for item_id, quantity in requested.items():
            item = await load_item(self.db, item_id)
            held = await self.db.scalar(
                select(func.coalesce(func.sum(Registration.quantity), 0)).where(
                    Registration.item_id == item_id,
                    Registration.status.in_([s.value for s in SEAT_HOLDING_STATUSES]),
                ),
            )
            available = item.capacity - held - item.released_seats
            if quantity > available:
                raise CapacityExceededError(
                    str(item_id), quantity, max(available, 0),
                )

    # ─── Cancellation ────────────────────────────────────────────

    async def cancel_order(self, order_id: UUID, reason: str | None = None) -> Order:
        """DRAFT/PENDING_PAYMENT → CANCELLED, cascading to registrations."""
        context = ErrorContext(order_id=str(order_id))
        order = await load_order(self.db, order_id)
        check_order_transition(
            OrderStatus(order.status), OrderStatus.CANCELLED, context,
        )
        now = self.clock()
        released = Counter()
        for registration in order.registrations:
            current = RegistrationStatus(registration.status)
            if current == RegistrationStatus.CANCELLED:
                continue
            check_registration_transition(
                current, RegistrationStatus.CANCELLED,
                OrderStatus.CANCELLED, context,
            )
            if holds_seat(current):
                released[registration.item_id] += registration.quantity
            registration.status = RegistrationStatus.CANCELLED.value
            registration.cancelled_at = now
            registration.cancellation_reason = reason
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = now
        await self.db.commit()
        logger.info(f"Order cancelled: {reason or 'no reason'}", extra={"order_id": order_id})

        await self._release(released)
        return await load_order(self.db, order_id)

    async def cancel_if_pending(self, order_id: UUID, reason: str) -> bool:
        """Cancel an abandoned checkout. False when the order has moved on."""
        order = await load_order(self.db, order_id)
        if order.status != OrderStatus.PENDING_PAYMENT.value:
            logger.info(
                f"Checkout expired for order in status {order.status}; ignored",
                extra={"order_id": order_id},
            )
            return False
        await self.cancel_order(order_id, reason)
        return True

    async def cancel_registration(
        self, registration_id: UUID, reason: str | None = None,
    ) -> Registration:
        """Cancel one registration; close the order if nothing live remains.

        A submitted, unpaid order has frozen totals the purchaser is about to
        pay, so only its last live registration can be cancelled this way;
        anything partial goes through cancel_order.
        """
        registration = await load_registration(self.db, registration_id)
        order = await load_order(self.db, registration.order_id)
        context = ErrorContext(order_id=str(order.id))
        current = RegistrationStatus(registration.status)
        order_status = OrderStatus(order.status)
        check_registration_transition(
            current, RegistrationStatus.CANCELLED, order_status, context,
        )
        siblings = [
            r for r in order.registrations
            if r.id != registration.id
            and r.status != RegistrationStatus.CANCELLED.value
        ]
        if order_status == OrderStatus.PENDING_PAYMENT and siblings:
            raise ValidationError(
                "A submitted order awaiting payment can only be cancelled as a whole",
                "registration_id",
                context,
            )

        now = self.clock()
        registration.status = RegistrationStatus.CANCELLED.value
        registration.cancelled_at = now
        registration.cancellation_reason = reason
        await self.tickets.void_for_registration(registration.id)

        closed_as = None
        if not siblings:
            closed_as = await self._close_emptied_order(order, now, context)
        elif order_status == OrderStatus.DRAFT:
            assert_totals_mutable(order_status, context)
            await self._snapshot_totals(order, siblings)
        await self.db.commit()
        logger.info(
            f"Registration {registration_id} cancelled",
            extra={"order_id": order.id},
        )

        if closed_as == OrderStatus.REFUNDED:
            await self._notify_refund(order, reason)
        if holds_seat(current):
            await self._release(Counter({registration.item_id: registration.quantity}))
        return await load_registration(self.db, registration_id)

    async def _close_emptied_order(
        self, order: Order, now: datetime, context: ErrorContext,
    ) -> OrderStatus:
        current = OrderStatus(order.status)
        target = (
            OrderStatus.REFUNDED if current == OrderStatus.PAID
            else OrderStatus.CANCELLED
        )
        check_order_transition(current, target, context)
        order.status = target.value
        if target == OrderStatus.REFUNDED:
            order.refunded_at = now
        else:
            order.cancelled_at = now
        logger.info(
            f"Last registration cancelled; order {target.value}",
            extra={"order_id": order.id},
        )
        return target

    # ─── Refunds ─────────────────────────────────────────────────

    async def refund_order(self, order_id: UUID, reason: str | None = None) -> Order:
        """PAID → REFUNDED: children refunded, tickets voided, seats released."""
        context = ErrorContext(order_id=str(order_id))
        order = await load_order(self.db, order_id)
        check_order_transition(OrderStatus(order.status), OrderStatus.REFUNDED, context)
        now = self.clock()
        released = Counter()
        for registration in order.registrations:
            current = RegistrationStatus(registration.status)
            if current != RegistrationStatus.ACTIVE:
                continue
            check_registration_transition(
                current, RegistrationStatus.REFUNDED, OrderStatus.REFUNDED, context,
            )
            registration.status = RegistrationStatus.REFUNDED.value
            released[registration.item_id] += registration.quantity
            await self.tickets.void_for_registration(registration.id)
        order.status = OrderStatus.REFUNDED.value
        order.refunded_at = now
        await self.db.commit()
        logger.info(f"Order refunded: {reason or 'no reason'}", extra={"order_id": order_id})

        await self._notify_refund(order, reason)
        await self._release(released)
        return await load_order(self.db, order_id)

    async def refund_by_charge_ref(self, charge_ref: str) -> Order | None:
        """Refund the order paid with this charge. None if already refunded."""
        result = await self.db.execute(
            select(Order).where(Order.charge_ref == charge_ref),
        )
        order = result.scalars().first()
        if order is None:
            raise ResourceNotFoundError("Order with charge", charge_ref)
        if order.status == OrderStatus.REFUNDED.value:
            logger.info("Order already refunded", extra={"order_id": order.id})
            return None
        return await self.refund_order(order.id, "refunded at payment provider")

    # ─── Helpers ─────────────────────────────────────────────────

    async def _release(self, released: Counter) -> None:
        for item_id, seats in released.items():
            await self.waitlist.release_capacity(item_id, seats)

    async def _notify_refund(self, order: Order, reason: str | None) -> None:
        try:
            purchaser = await load_person(self.db, order.purchaser_id)
            await self.notifier.send_transactional(
                tenant_id=order.tenant_id,
                template=REFUND_TEMPLATE,
                recipient_email=purchaser.email,
                recipient_name=purchaser.full_name,
                variables={
                    "orderNumber": order.order_number or "",
                    "total": format_amount(order.total_cents, order.currency),
                    "creditNoteEligible": "true",
                    "reason": reason or "",
                },
                language=purchaser.preferred_language or "en",
            )
        except Exception as e:
            logger.error(
                f"Refund notification failed: {e}",
                extra={"order_id": order.id}, exc_info=True,
            )
