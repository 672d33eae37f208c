"""Entity Loaders — fetch-or-404 helpers shared by the services.

Invariants:
    - Every loader raises ResourceNotFoundError, never returns None
    - Orders and waitlist entries are loaded with populate_existing: services
      re-read after compare-and-set UPDATEs that bypass the identity map
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.errors import ErrorContext, ResourceNotFoundError
from regdesk.models.item import Item
from regdesk.models.order import Order
from regdesk.models.person import Person
from regdesk.models.registration import Registration
from regdesk.models.tenant import Tenant
from regdesk.models.waitlist_entry import WaitlistEntry


async def load_order(db: AsyncSession, order_id: UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise ResourceNotFoundError(
            "Order", str(order_id), ErrorContext(order_id=str(order_id)),
        )
    return order


async def load_registration(
    db: AsyncSession, registration_id: UUID,
) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True),
    )
    registration = result.scalar_one_or_none()
    if registration is None:
        raise ResourceNotFoundError("Registration", str(registration_id))
    return registration


async def load_entry(db: AsyncSession, entry_id: UUID) -> WaitlistEntry:
    result = await db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.id == entry_id)
        .execution_options(populate_existing=True),
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise ResourceNotFoundError(
            "WaitlistEntry", str(entry_id), ErrorContext(entry_id=str(entry_id)),
        )
    return entry


async def load_item(db: AsyncSession, item_id: UUID) -> Item:
    item = await db.get(Item, item_id, populate_existing=True)
    if item is None:
        raise ResourceNotFoundError("Item", str(item_id))
    return item


async def load_person(db: AsyncSession, person_id: UUID) -> Person:
    person = await db.get(Person, person_id)
    if person is None:
        raise ResourceNotFoundError("Person", str(person_id))
    return person


async def load_tenant(db: AsyncSession, tenant_id: UUID) -> Tenant:
    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise ResourceNotFoundError("Tenant", str(tenant_id))
    return tenant
