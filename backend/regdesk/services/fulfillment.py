"""Fulfillment Orchestrator — turns a paid order into ACTIVE registrations and tickets.

Invariants:
    - fulfill() is idempotent: an already-PAID order returns its existing state
    - Order number, PAID transition, registration activation and ticket issuance
      commit in ONE transaction
    - PENDING_PAYMENT → PAID is a compare-and-set on status: of two racing
      fulfillers exactly one performs the transition, the other converges
    - An order neither PENDING_PAYMENT nor PAID is an integrity problem:
      InvalidStateError, logged critical, never retried into a wrong state
    - Receipt building, rendering and notification run after commit; their
      failure is logged and reported (documents_delivered=False), never rolled back
    - A course ticket is per (holder, track), so fulfillment may hand back a
      ticket issued by an earlier order; repeated calls return the same set

Design Decisions:
    - Receipt model built from the committed rows (core/receipt.py), so the
      renderer sees exactly what the database holds
    - Registrations already CANCELLED stay cancelled; only PENDING_PAYMENT ones
      are activated and ticketed
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.config import Settings
from regdesk.core.domain_types import (
    ItemKind, OrderKind, OrderStatus, RegistrationStatus,
)
from regdesk.core.errors import ErrorContext, InvalidStateError
from regdesk.core.money import format_amount
from regdesk.core.order_state import check_order_transition, check_registration_transition
from regdesk.core.receipt import (
    Address, BuyerInfo, PlatformInfo, PricedLine, ReceiptTicket, SellerInfo,
    TicketReceipt, TransactionInfo, build_receipt, receipt_to_dict,
)
from regdesk.core.repository_protocols import NotificationSender, ReceiptRenderer
from regdesk.models.order import Order
from regdesk.models.person import Person
from regdesk.models.tenant import Tenant
from regdesk.services import utc_now
from regdesk.services.loaders import load_order, load_person, load_tenant
from regdesk.services.order_numbers import assign_order_number
from regdesk.services.tickets import IssuedTicket, TicketIssuer

logger = logging.getLogger(__name__)

CONFIRMATION_TEMPLATE = "order-confirmation"


@dataclass(frozen=True)
class FulfillmentResult:
    order_id: UUID
    status: OrderStatus
    order_number: str | None
    already_paid: bool
    tickets: list[IssuedTicket] = field(default_factory=list)
    documents_delivered: bool = False
    document_ref: str | None = None


def platform_info(settings: Settings) -> PlatformInfo:
    return PlatformInfo(
        name=settings.platform_name,
        legal_name=settings.platform_legal_name,
        organization_number=settings.platform_org_number,
        website=settings.platform_website,
        support_email=settings.platform_support_email,
    )


class FulfillmentService:
    """Drives PENDING_PAYMENT → PAID and everything that hangs off it."""

    def __init__(
        self,
        db: AsyncSession,
        renderer: ReceiptRenderer,
        notifier: NotificationSender,
        platform: PlatformInfo,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.renderer = renderer
        self.notifier = notifier
        self.platform = platform
        self.clock = clock
        self.tickets = TicketIssuer(db, clock)

    async def fulfill(
        self,
        order_id: UUID,
        session_ref: str | None,
        charge_ref: str | None = None,
    ) -> FulfillmentResult:
        context = ErrorContext(order_id=str(order_id))
        order = await load_order(self.db, order_id)
        status = OrderStatus(order.status)

        if status == OrderStatus.PAID:
            logger.info("Order already paid; nothing to do", extra={"order_id": order_id})
            return await self._paid_result(order)
        if status != OrderStatus.PENDING_PAYMENT:
            self._raise_invalid_state(order, context)

        check_order_transition(status, OrderStatus.PAID, context)
        tenant = await load_tenant(self.db, order.tenant_id)
        now = self.clock()

        await assign_order_number(self.db, order, tenant, now)
        transitioned = await self._mark_paid(order, session_ref, charge_ref, now)
        if not transitioned:
            await self.db.rollback()
            order = await load_order(self.db, order_id)
            if order.status == OrderStatus.PAID.value:
                logger.info(
                    "Lost fulfillment race; order already paid",
                    extra={"order_id": order_id},
                )
                return await self._paid_result(order)
            self._raise_invalid_state(order, context)

        activated = []
        for registration in order.registrations:
            if registration.status != RegistrationStatus.PENDING_PAYMENT.value:
                continue
            check_registration_transition(
                RegistrationStatus(registration.status),
                RegistrationStatus.ACTIVE,
                OrderStatus.PAID,
                context,
            )
            registration.status = RegistrationStatus.ACTIVE.value
            activated.append(registration)

        issued = await self.tickets.issue_for_order(
            order.id, OrderKind(order.kind), activated,
        )
        await self.db.commit()
        order = await load_order(self.db, order_id)
        logger.info(
            f"Order {order.order_number} paid; {len(issued)} ticket(s) issued",
            extra={"order_id": order_id},
        )

        delivered, document_ref = await self._deliver_documents(order, tenant, issued)
        return FulfillmentResult(
            order_id=order.id,
            status=OrderStatus.PAID,
            order_number=order.order_number,
            already_paid=False,
            tickets=issued,
            documents_delivered=delivered,
            document_ref=document_ref,
        )

    async def _mark_paid(
        self,
        order: Order,
        session_ref: str | None,
        charge_ref: str | None,
        now: datetime,
    ) -> bool:
        values = {"status": OrderStatus.PAID.value, "paid_at": now}
        if session_ref:
            values["payment_session_ref"] = session_ref
        if charge_ref:
            values["charge_ref"] = charge_ref
        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.PENDING_PAYMENT.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount == 1

    async def _paid_result(self, order: Order) -> FulfillmentResult:
        active = [
            r for r in order.registrations
            if r.status == RegistrationStatus.ACTIVE.value
        ]
        return FulfillmentResult(
            order_id=order.id,
            status=OrderStatus.PAID,
            order_number=order.order_number,
            already_paid=True,
            tickets=await self.tickets.find_for_order(
                order.id, OrderKind(order.kind), active,
            ),
        )

    def _raise_invalid_state(self, order: Order, context: ErrorContext) -> None:
        logger.critical(
            f"Payment confirmed for order in status {order.status}; "
            "manual reconciliation required",
            extra={"order_id": order.id, "error_code": "INVALID_STATE"},
        )
        raise InvalidStateError(
            f"Order {order.id} cannot be fulfilled from status {order.status}",
            order.status,
            context,
        )

    # ─── Documents & notification ────────────────────────────────

    async def _deliver_documents(
        self, order: Order, tenant: Tenant, issued: list[IssuedTicket],
    ) -> tuple[bool, str | None]:
        delivered = True
        document_ref = None
        purchaser = await load_person(self.db, order.purchaser_id)

        try:
            receipt = self._build_receipt(order, tenant, purchaser, issued)
            document_ref = await self.renderer.render(receipt_to_dict(receipt))
        except Exception as e:
            delivered = False
            logger.error(
                f"Receipt rendering failed: {e}",
                extra={"order_id": order.id}, exc_info=True,
            )

        variables = {
            "orderNumber": order.order_number or "",
            "total": format_amount(order.total_cents, order.currency),
            "ticketCount": str(len(issued)),
            "sellerName": tenant.legal_name,
        }
        if document_ref:
            variables["documentUrl"] = document_ref
        try:
            await self.notifier.send_transactional(
                tenant_id=order.tenant_id,
                template=CONFIRMATION_TEMPLATE,
                recipient_email=purchaser.email,
                recipient_name=purchaser.full_name,
                variables=variables,
                language=purchaser.preferred_language or "en",
            )
        except Exception as e:
            delivered = False
            logger.error(
                f"Order confirmation notification failed: {e}",
                extra={"order_id": order.id}, exc_info=True,
            )
        return delivered, document_ref

    def _build_receipt(
        self, order: Order, tenant: Tenant, purchaser: Person, issued: list[IssuedTicket],
    ) -> TicketReceipt:
        # A course ticket can predate this order, so resolve by holder and item.
        holders = {r.holder_id: r.holder for r in order.registrations}
        items = {r.item_id: r.item for r in order.registrations}
        billable = [
            r for r in order.registrations
            if r.status != RegistrationStatus.CANCELLED.value
        ]
        lines = [
            PricedLine(
                description=_line_description(r.item),
                quantity=r.quantity,
                unit_price_cents=r.unit_price_cents,
            )
            for r in billable
        ]
        tickets = [
            ReceiptTicket(
                ticket_number=t.sequence,
                holder_name=holders[t.holder_id].full_name,
                item_title=items[t.item_id].title,
                qr_token=t.qr_token,
            )
            for t in issued
        ]
        return build_receipt(
            seller=SellerInfo(
                legal_name=tenant.legal_name,
                organization_number=tenant.organization_number,
                address=Address(
                    street=tenant.street,
                    postal_code=tenant.postal_code,
                    city=tenant.city,
                    country=tenant.country,
                ),
                contact_email=tenant.contact_email,
                vat_registered=tenant.vat_registered,
            ),
            platform=self.platform,
            buyer=BuyerInfo(name=purchaser.full_name, email=purchaser.email),
            transaction=TransactionInfo(
                order_number=order.order_number or "",
                transaction_date=order.paid_at or self.clock(),
                payment_reference=order.payment_session_ref,
                charge_reference=order.charge_ref,
            ),
            lines=lines,
            totals=order.totals,
            tickets=tickets,
        )


def _line_description(item) -> str:
    if item.series_title and item.kind == ItemKind.COURSE_TRACK.value:
        return f"{item.series_title}: {item.title}"
    return item.title
