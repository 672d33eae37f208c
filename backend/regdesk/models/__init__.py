"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Order is the aggregate root for registrations and tickets

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from regdesk.models.tenant import Tenant, OrderNumberCounter  # noqa: F401
from regdesk.models.person import Person  # noqa: F401
from regdesk.models.item import Item  # noqa: F401
from regdesk.models.order import Order  # noqa: F401
from regdesk.models.registration import Registration  # noqa: F401
from regdesk.models.ticket import Ticket, EventTicket  # noqa: F401
from regdesk.models.waitlist_entry import WaitlistEntry  # noqa: F401
from regdesk.models.webhook_event import WebhookEvent  # noqa: F401
