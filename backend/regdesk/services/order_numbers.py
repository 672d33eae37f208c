"""Order Number Allocation — per-tenant counter with atomic increment-and-read.

Invariants:
    - next_sequence() never returns the same value twice for a tenant
    - Gaps are allowed (a rolled-back fulfillment burns its number)
    - An order's number is written once: the UPDATE only matches while it is NULL

Design Decisions:
    - UPDATE ... SET last_value = last_value + 1 RETURNING last_value: the row lock
      serializes concurrent allocators without a SELECT FOR UPDATE round trip
    - Missing counter row created through insert_if_absent, then the increment
      is retried, so two first-ever allocations cannot both get 1
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.domain_types import InsertOutcome
from regdesk.core.order_numbers import format_order_number
from regdesk.infrastructure.storage import insert_if_absent
from regdesk.models.order import Order
from regdesk.models.tenant import OrderNumberCounter, Tenant

logger = logging.getLogger(__name__)


async def _increment(db: AsyncSession, tenant_id: UUID) -> int | None:
    result = await db.execute(
        update(OrderNumberCounter)
        .where(OrderNumberCounter.tenant_id == tenant_id)
        .values(last_value=OrderNumberCounter.last_value + 1)
        .returning(OrderNumberCounter.last_value)
        .execution_options(synchronize_session=False),
    )
    return result.scalar_one_or_none()


async def next_sequence(db: AsyncSession, tenant_id: UUID) -> int:
    """Allocate the tenant's next order sequence inside the caller's transaction."""
    value = await _increment(db, tenant_id)
    if value is not None:
        return value
    outcome = await insert_if_absent(
        db, OrderNumberCounter, {"tenant_id": tenant_id, "last_value": 1},
    )
    if outcome == InsertOutcome.INSERTED:
        return 1
    # Another allocator created the row first.
    value = await _increment(db, tenant_id)
    if value is None:
        raise RuntimeError(f"Order number counter for {tenant_id} vanished")
    return value


async def assign_order_number(
    db: AsyncSession, order: Order, tenant: Tenant, now: datetime,
) -> str:
    """Give the order its permanent number if it has none; return the number."""
    if order.order_number:
        return order.order_number
    sequence = await next_sequence(db, tenant.id)
    number = format_order_number(tenant.order_prefix, now, sequence)
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.order_number.is_(None))
        .values(order_number=number)
        .execution_options(synchronize_session=False),
    )
    if result.rowcount == 0:
        await db.refresh(order, ["order_number"])
        logger.info(
            f"Order number already assigned; {number} left as a gap",
            extra={"order_id": order.id},
        )
        return order.order_number
    logger.info(f"Assigned order number {number}", extra={"order_id": order.id})
    return number
