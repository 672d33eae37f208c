"""Ticket Issuer — idempotent ticket creation, voiding and check-in validation.

Invariants:
    - issue() twice with the same arguments returns the same ticket, never two
    - Course tickets: uniqueness on (holder, item) among ACTIVE tickets
    - Event tickets: uniqueness on (registration, sequence)
    - A conflict with an existing ACTIVE ticket is success (created=False)
    - QR tokens are minted here only (core/ticket_tokens.generate_qr_token)

Design Decisions:
    - Conflicts resolved by insert_if_absent + re-read instead of catching
      IntegrityError: the fulfillment transaction must stay usable
    - validate() checks ticket, item and registration status together: a VOID
      ticket or a cancelled registration never scans as valid
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.domain_types import (
    InsertOutcome, ItemKind, ItemRef, OrderKind, RegistrationStatus, TicketStatus,
)
from regdesk.core.errors import ConcurrencyError, ErrorContext
from regdesk.core.ticket_tokens import (
    RegistrationView, generate_qr_token, plan_tickets,
)
from regdesk.infrastructure.storage import insert_if_absent
from regdesk.models.registration import Registration
from regdesk.models.ticket import EventTicket, Ticket
from regdesk.services import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedTicket:
    id: UUID
    registration_id: UUID
    holder_id: UUID
    item_id: UUID
    sequence: int
    qr_token: str
    status: str
    created: bool


@dataclass(frozen=True)
class TicketValidation:
    valid: bool
    message: str
    ticket_id: UUID | None = None
    holder_name: str | None = None


def _to_issued(row: Ticket | EventTicket, created: bool) -> IssuedTicket:
    return IssuedTicket(
        id=row.id,
        registration_id=row.registration_id,
        holder_id=row.holder_id,
        item_id=row.item_id,
        sequence=row.sequence,
        qr_token=row.qr_token,
        status=row.status,
        created=created,
    )


def _views(registrations: Sequence[Registration]) -> list[RegistrationView]:
    return [
        RegistrationView(
            id=r.id,
            holder_id=r.holder_id,
            item_id=r.item_id,
            quantity=r.quantity,
            created_at=r.created_at,
        )
        for r in registrations
    ]


class TicketIssuer:
    """Creates, voids and validates course and event tickets."""

    def __init__(
        self, db: AsyncSession, clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.clock = clock

    async def issue(
        self,
        *,
        order_id: UUID,
        registration_id: UUID,
        holder_id: UUID,
        item_ref: ItemRef,
        sequence: int,
    ) -> IssuedTicket:
        """Issue one ticket, or return the one already holding its unique key."""
        model = EventTicket if item_ref.kind == ItemKind.EVENT else Ticket
        ticket_id = uuid.uuid4()
        outcome = await insert_if_absent(self.db, model, {
            "id": ticket_id,
            "order_id": order_id,
            "registration_id": registration_id,
            "holder_id": holder_id,
            "item_id": item_ref.item_id,
            "qr_token": generate_qr_token(),
            "status": TicketStatus.ACTIVE.value,
            "sequence": sequence,
            "issued_at": self.clock(),
        })
        existing = await self._find_existing(
            model, registration_id, holder_id, item_ref.item_id, sequence,
        )
        if existing is None:
            raise ConcurrencyError(
                "Ticket insert conflicted but no existing ticket was found",
                ErrorContext(
                    order_id=str(order_id),
                    debug_info={"registration_id": str(registration_id),
                                "sequence": sequence},
                ),
            )
        created = outcome == InsertOutcome.INSERTED and existing.id == ticket_id
        if not created:
            logger.info(
                f"Ticket already exists for registration {registration_id} "
                f"(sequence {sequence}); reusing",
                extra={"order_id": order_id},
            )
        return _to_issued(existing, created)

    async def _find_existing(
        self,
        model: type[Ticket] | type[EventTicket],
        registration_id: UUID,
        holder_id: UUID,
        item_id: UUID,
        sequence: int,
    ) -> Ticket | EventTicket | None:
        if model is EventTicket:
            query = select(EventTicket).where(
                EventTicket.registration_id == registration_id,
                EventTicket.sequence == sequence,
            )
        else:
            query = select(Ticket).where(
                Ticket.holder_id == holder_id,
                Ticket.item_id == item_id,
                Ticket.status == TicketStatus.ACTIVE.value,
            )
        result = await self.db.execute(
            query.execution_options(populate_existing=True),
        )
        return result.scalars().first()

    async def issue_for_order(
        self,
        order_id: UUID,
        kind: OrderKind,
        registrations: Sequence[Registration],
    ) -> list[IssuedTicket]:
        """Issue every ticket the order's registrations entitle it to."""
        item_kind = ItemKind.EVENT if kind == OrderKind.EVENT else ItemKind.COURSE_TRACK
        plan = plan_tickets(kind, _views(registrations))
        issued = []
        for planned in plan:
            issued.append(await self.issue(
                order_id=order_id,
                registration_id=planned.registration_id,
                holder_id=planned.holder_id,
                item_ref=ItemRef(kind=item_kind, item_id=planned.item_id),
                sequence=planned.sequence,
            ))
        return issued

    async def find_for_order(
        self,
        order_id: UUID,
        kind: OrderKind,
        registrations: Sequence[Registration],
    ) -> list[IssuedTicket]:
        """ACTIVE tickets the order's registrations hold, in issuance order. Read-only.

        Course tickets are keyed by (holder, item), so the ticket may belong to
        an earlier order for the same seat; event tickets are the order's own.
        """
        if kind == OrderKind.EVENT:
            result = await self.db.execute(
                select(EventTicket)
                .where(
                    EventTicket.order_id == order_id,
                    EventTicket.status == TicketStatus.ACTIVE.value,
                )
                .order_by(EventTicket.sequence)
                .execution_options(populate_existing=True),
            )
            return [_to_issued(row, False) for row in result.scalars()]

        found = []
        for planned in plan_tickets(kind, _views(registrations)):
            existing = await self._find_existing(
                Ticket, planned.registration_id, planned.holder_id,
                planned.item_id, planned.sequence,
            )
            if existing is not None:
                found.append(_to_issued(existing, False))
        return found

    async def void_for_registration(self, registration_id: UUID) -> int:
        """Void every ACTIVE ticket of a registration. Returns how many changed."""
        now = self.clock()
        voided = 0
        for model in (Ticket, EventTicket):
            result = await self.db.execute(
                update(model)
                .where(
                    model.registration_id == registration_id,
                    model.status == TicketStatus.ACTIVE.value,
                )
                .values(status=TicketStatus.VOID.value, voided_at=now)
                .execution_options(synchronize_session=False),
            )
            voided += result.rowcount or 0
        return voided

    async def validate(self, qr_token: str, item_id: UUID) -> TicketValidation:
        """Check-in scan: is this token good for entry to this item right now?"""
        ticket = await self._find_by_token(qr_token)
        if ticket is None:
            return TicketValidation(False, "Ticket not found")
        if ticket.item_id != item_id:
            return TicketValidation(
                False, "Ticket is for a different course or event", ticket.id,
            )
        if ticket.status != TicketStatus.ACTIVE.value:
            return TicketValidation(False, "Ticket has been voided", ticket.id)
        registration = await self.db.get(Registration, ticket.registration_id)
        if (
            registration is None
            or registration.status != RegistrationStatus.ACTIVE.value
        ):
            return TicketValidation(
                False, "Registration is no longer active", ticket.id,
            )
        return TicketValidation(
            True, "Ticket valid", ticket.id, registration.holder.full_name,
        )

    async def _find_by_token(self, qr_token: str) -> Ticket | EventTicket | None:
        for model in (Ticket, EventTicket):
            result = await self.db.execute(
                select(model)
                .where(model.qr_token == qr_token)
                .execution_options(populate_existing=True),
            )
            found = result.scalar_one_or_none()
            if found is not None:
                return found
        return None
