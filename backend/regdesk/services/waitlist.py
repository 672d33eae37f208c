"""Waitlist Offer Manager — time-boxed exclusive offers on freed capacity.

Invariants:
    - QUEUED → OFFERED → {ACCEPTED, DECLINED, EXPIRED}; QUEUED → DECLINED
    - At most one OFFERED entry per item: the offering UPDATE carries a
      NOT EXISTS guard, backed by a partial unique index
    - Strict FIFO on (enqueued_at, id); no priority overrides
    - Freed capacity is counted on Item.released_seats; a release while an
      offer is outstanding only bumps the count, the next offer waits for
      the current one to resolve
    - An offer is acceptable only while now < offered_until (exclusive)
    - Expiry is an idempotent UPDATE ... WHERE status = 'OFFERED', so lazy
      expiry and the periodic sweep can run concurrently

Design Decisions:
    - Expiry is checked lazily on every access to an item's queue; sweep_expired()
      is the same transition for items nobody touches
    - Released seats with nobody left to offer them to go back to general sale
      (released_seats reset to 0)
    - Offer notifications are sent after commit; failures are logged only
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import and_, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from regdesk.core.domain_types import (
    ORDER_KIND_FOR_ITEM, InsertOutcome, ItemKind, OrderStatus,
    RegistrationStatus, WaitlistStatus,
)
from regdesk.core.errors import (
    ErrorContext, InvalidTransitionError, OfferExpiredError,
)
from regdesk.core.money import LineItem, calculate_totals
from regdesk.core.repository_protocols import NotificationSender
from regdesk.core.waitlist_state import (
    ACTIVE_STATUSES, as_utc, can_accept, check_waitlist_transition,
    offer_deadline,
)
from regdesk.infrastructure.storage import insert_if_absent
from regdesk.models.item import Item
from regdesk.models.order import Order
from regdesk.models.registration import Registration
from regdesk.models.waitlist_entry import WaitlistEntry
from regdesk.services import utc_now
from regdesk.services.loaders import (
    load_entry, load_item, load_person, load_tenant,
)

logger = logging.getLogger(__name__)

OFFER_TEMPLATE = "waitlist-offer"


@dataclass(frozen=True)
class EnqueueResult:
    entry: WaitlistEntry
    created: bool


@dataclass(frozen=True)
class SweepResult:
    expired: int
    offered: int


class WaitlistManager:
    """Queue, offer, accept, decline and expire waitlist entries."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationSender,
        offer_hours: int = 48,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.notifier = notifier
        self.offer_hours = offer_hours
        self.clock = clock

    # ─── Queue ───────────────────────────────────────────────────

    async def enqueue(self, item_id: UUID, holder_id: UUID) -> EnqueueResult:
        """Join the item's queue. Idempotent while the holder is queued or offered."""
        item = await load_item(self.db, item_id)
        await load_person(self.db, holder_id)
        outcome = await insert_if_absent(self.db, WaitlistEntry, {
            "id": uuid.uuid4(),
            "tenant_id": item.tenant_id,
            "item_id": item_id,
            "holder_id": holder_id,
            "status": WaitlistStatus.QUEUED.value,
            "enqueued_at": self.clock(),
        })
        await self.db.commit()
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.item_id == item_id,
                WaitlistEntry.holder_id == holder_id,
                WaitlistEntry.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .execution_options(populate_existing=True),
        )
        entry = result.scalar_one()
        created = outcome == InsertOutcome.INSERTED
        logger.info(
            "Waitlist entry queued" if created else "Holder already on waitlist",
            extra={"entry_id": entry.id, "item_id": item_id},
        )
        return EnqueueResult(entry=entry, created=created)

    async def release_capacity(
        self, item_id: UUID, seats: int = 1,
    ) -> WaitlistEntry | None:
        """Capacity-freeing event: count the seats, then try to offer one."""
        if seats <= 0:
            return None
        await self.db.execute(
            update(Item)
            .where(Item.id == item_id)
            .values(released_seats=Item.released_seats + seats)
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()
        logger.info(
            f"Released {seats} seat(s) to the waitlist", extra={"item_id": item_id},
        )
        return await self.offer_next(item_id)

    # ─── Offers ──────────────────────────────────────────────────

    async def offer_next(self, item_id: UUID) -> WaitlistEntry | None:
        """Offer a released seat to the queue head, unless an offer is open."""
        item = await load_item(self.db, item_id)
        now = self.clock()
        await self._expire_overdue(now, item_id)

        if item.released_seats <= 0:
            await self.db.commit()
            return None

        head = await self._queue_head(item_id)
        if head is None:
            if not await self._has_open_offer(item_id):
                await self._return_seats_to_sale(item_id)
            await self.db.commit()
            return None

        offered = aliased(WaitlistEntry)
        result = await self.db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == head.id,
                WaitlistEntry.status == WaitlistStatus.QUEUED.value,
                ~exists().where(and_(
                    offered.item_id == item_id,
                    offered.status == WaitlistStatus.OFFERED.value,
                )),
            )
            .values(
                status=WaitlistStatus.OFFERED.value,
                offered_until=offer_deadline(now, self.offer_hours),
            )
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()
        if result.rowcount == 0:
            logger.info(
                "Offer outstanding; released seat stays counted",
                extra={"item_id": item_id},
            )
            return None

        entry = await load_entry(self.db, head.id)
        logger.info(
            f"Offered seat until {entry.offered_until.isoformat()}",
            extra={"entry_id": entry.id, "item_id": item_id},
        )
        await self._notify_offer(entry, item)
        return entry

    async def accept_offer(self, entry_id: UUID) -> UUID:
        """Accept an open offer: new PENDING_PAYMENT order + registration.

        Returns the new order id. Repeating an accepted acceptance returns the
        same order.
        """
        context = ErrorContext(entry_id=str(entry_id))
        entry = await load_entry(self.db, entry_id)
        status = WaitlistStatus(entry.status)
        if status == WaitlistStatus.ACCEPTED and entry.accepted_order_id:
            return entry.accepted_order_id
        if status != WaitlistStatus.OFFERED:
            check_waitlist_transition(status, WaitlistStatus.ACCEPTED, context)

        now = self.clock()
        if not can_accept(status, entry.offered_until, now):
            await self._expire_entry(entry.id, now)
            await self.db.commit()
            logger.warning(
                "Offer accepted after expiry; advancing queue",
                extra={"entry_id": entry_id, "item_id": entry.item_id},
            )
            await self.offer_next(entry.item_id)
            raise OfferExpiredError(str(entry_id), context)

        item = await load_item(self.db, entry.item_id)
        tenant = await load_tenant(self.db, item.tenant_id)
        totals = calculate_totals(
            [LineItem(item.title, 1, item.unit_price_cents)],
            vat_rate=tenant.effective_vat_rate,
            currency=tenant.currency,
        )
        order = Order(
            id=uuid.uuid4(),
            tenant_id=item.tenant_id,
            purchaser_id=entry.holder_id,
            kind=ORDER_KIND_FOR_ITEM[ItemKind(item.kind)].value,
            status=OrderStatus.PENDING_PAYMENT.value,
            submitted_at=now,
            registrations=[Registration(
                holder_id=entry.holder_id,
                item_id=item.id,
                status=RegistrationStatus.PENDING_PAYMENT.value,
                quantity=1,
                unit_price_cents=item.unit_price_cents,
            )],
        )
        order.snapshot_totals(totals)
        self.db.add(order)
        await self.db.flush()

        result = await self.db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry.id,
                WaitlistEntry.status == WaitlistStatus.OFFERED.value,
                WaitlistEntry.offered_until > now,
            )
            .values(
                status=WaitlistStatus.ACCEPTED.value,
                accepted_order_id=order.id,
                offered_until=None,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount == 0:
            await self.db.rollback()
            entry = await load_entry(self.db, entry_id)
            if entry.status == WaitlistStatus.ACCEPTED.value and entry.accepted_order_id:
                return entry.accepted_order_id
            if entry.status == WaitlistStatus.EXPIRED.value:
                raise OfferExpiredError(str(entry_id), context)
            raise InvalidTransitionError(
                "WaitlistEntry", entry.status, WaitlistStatus.ACCEPTED.value, context,
            )

        await self.db.execute(
            update(Item)
            .where(Item.id == item.id, Item.released_seats > 0)
            .values(released_seats=Item.released_seats - 1)
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()
        logger.info(
            "Offer accepted; order created",
            extra={"entry_id": entry_id, "order_id": order.id},
        )
        # A second released seat may be waiting for the next head.
        await self.offer_next(item.id)
        return order.id

    async def decline_offer(self, entry_id: UUID) -> WaitlistEntry:
        """Leave the queue or turn down an offer. Repeating a decline is a no-op."""
        context = ErrorContext(entry_id=str(entry_id))
        entry = await load_entry(self.db, entry_id)
        status = WaitlistStatus(entry.status)
        if status == WaitlistStatus.DECLINED:
            return entry
        check_waitlist_transition(status, WaitlistStatus.DECLINED, context)

        result = await self.db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry.id,
                WaitlistEntry.status == status.value,
            )
            .values(
                status=WaitlistStatus.DECLINED.value,
                offered_until=None,
                resolved_at=self.clock(),
            )
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()
        if result.rowcount == 0:
            # Status moved underneath us (expired or accepted); re-evaluate.
            return await self.decline_offer(entry_id)

        logger.info("Waitlist entry declined", extra={"entry_id": entry_id})
        if status == WaitlistStatus.OFFERED:
            await self.offer_next(entry.item_id)
        return await load_entry(self.db, entry_id)

    # ─── Expiry ──────────────────────────────────────────────────

    async def sweep_expired(self, item_id: UUID | None = None) -> SweepResult:
        """Expire overdue offers and promote the next entry on each affected item."""
        now = self.clock()
        query = select(WaitlistEntry.item_id).where(
            WaitlistEntry.status == WaitlistStatus.OFFERED.value,
            WaitlistEntry.offered_until <= now,
        )
        if item_id is not None:
            query = query.where(WaitlistEntry.item_id == item_id)
        item_ids = list(dict.fromkeys((await self.db.execute(query)).scalars()))

        expired = await self._expire_overdue(now, item_id)
        await self.db.commit()

        offered = 0
        for affected in item_ids:
            if await self.offer_next(affected) is not None:
                offered += 1
        if expired:
            logger.info(f"Sweep expired {expired} offer(s), made {offered} new offer(s)")
        return SweepResult(expired=expired, offered=offered)

    async def _expire_overdue(self, now: datetime, item_id: UUID | None) -> int:
        stmt = (
            update(WaitlistEntry)
            .where(
                WaitlistEntry.status == WaitlistStatus.OFFERED.value,
                WaitlistEntry.offered_until <= now,
            )
            .values(
                status=WaitlistStatus.EXPIRED.value,
                offered_until=None,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if item_id is not None:
            stmt = stmt.where(WaitlistEntry.item_id == item_id)
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def _expire_entry(self, entry_id: UUID, now: datetime) -> None:
        await self.db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry_id,
                WaitlistEntry.status == WaitlistStatus.OFFERED.value,
            )
            .values(
                status=WaitlistStatus.EXPIRED.value,
                offered_until=None,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False),
        )

    # ─── Helpers ─────────────────────────────────────────────────

    async def _queue_head(self, item_id: UUID) -> WaitlistEntry | None:
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(
                WaitlistEntry.item_id == item_id,
                WaitlistEntry.status == WaitlistStatus.QUEUED.value,
            )
            .order_by(WaitlistEntry.enqueued_at, WaitlistEntry.id)
            .limit(1),
        )
        return result.scalar_one_or_none()

    async def _has_open_offer(self, item_id: UUID) -> bool:
        result = await self.db.execute(
            select(WaitlistEntry.id).where(
                WaitlistEntry.item_id == item_id,
                WaitlistEntry.status == WaitlistStatus.OFFERED.value,
            ),
        )
        return result.first() is not None

    async def _return_seats_to_sale(self, item_id: UUID) -> None:
        result = await self.db.execute(
            update(Item)
            .where(Item.id == item_id, Item.released_seats > 0)
            .values(released_seats=0)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount:
            logger.info(
                "Waitlist empty; released seats returned to sale",
                extra={"item_id": item_id},
            )

    async def _notify_offer(self, entry: WaitlistEntry, item: Item) -> None:
        try:
            holder = await load_person(self.db, entry.holder_id)
            await self.notifier.send_transactional(
                tenant_id=entry.tenant_id,
                template=OFFER_TEMPLATE,
                recipient_email=holder.email,
                recipient_name=holder.full_name,
                variables={
                    "itemTitle": item.title,
                    "offeredUntil": as_utc(entry.offered_until).isoformat(),
                    "entryId": str(entry.id),
                },
                language=holder.preferred_language or "en",
            )
        except Exception as e:
            logger.error(
                f"Waitlist offer notification failed: {e}",
                extra={"entry_id": entry.id}, exc_info=True,
            )
