"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Identity types wrap UUIDs; provider event ids stay plain strings (natural key)
    - Money is always integer minor units (cents/øre), never float
    - All valid states encoded as Enums — no raw string matching
    - Enum values are the exact strings persisted in `status`/`kind` columns

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and compare against DB strings without converters
    - Order kind is an explicit tag, not a subclass: course and event orders share
      one state machine and differ only where ticket issuance branches on it
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

TenantId = NewType("TenantId", UUID)
OrderId = NewType("OrderId", UUID)
PersonId = NewType("PersonId", UUID)
ItemId = NewType("ItemId", UUID)
RegistrationId = NewType("RegistrationId", UUID)
WaitlistEntryId = NewType("WaitlistEntryId", UUID)
ProviderEventId = NewType("ProviderEventId", str)


# ─── Value Types ─────────────────────────────────────────────────

Cents = NewType("Cents", int)


# ─── Enums ───────────────────────────────────────────────────────

class OrderKind(str, Enum):
    """What an order buys — selects the ticket issuance strategy."""
    COURSE_PERIOD = "COURSE_PERIOD"
    EVENT = "EVENT"


class ItemKind(str, Enum):
    """Catalog item variants. A course period sells tracks; events sell units."""
    COURSE_TRACK = "COURSE_TRACK"
    EVENT = "EVENT"


ORDER_KIND_FOR_ITEM: dict[ItemKind, OrderKind] = {
    ItemKind.COURSE_TRACK: OrderKind.COURSE_PERIOD,
    ItemKind.EVENT: OrderKind.EVENT,
}


class OrderStatus(str, Enum):
    """Order lifecycle — see core/order_state.py for legal transitions."""
    DRAFT = "DRAFT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class RegistrationStatus(str, Enum):
    """Registration lifecycle — mirrors the order, independently cancellable."""
    DRAFT = "DRAFT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class TicketStatus(str, Enum):
    ACTIVE = "ACTIVE"
    VOID = "VOID"


class WaitlistStatus(str, Enum):
    """Waitlist entry lifecycle — see core/waitlist_state.py."""
    QUEUED = "QUEUED"
    OFFERED = "OFFERED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class WebhookStatus(str, Enum):
    """Idempotency ledger row states."""
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class AdmissionOutcome(str, Enum):
    """Result of admitting a provider event into the ledger."""
    ADMITTED = "admitted"
    ALREADY_PROCESSED = "already_processed"
    ALREADY_PROCESSING = "already_processing"


class InsertOutcome(str, Enum):
    """Result of an insert-if-absent write."""
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


# ─── Composite Values ────────────────────────────────────────────

@dataclass(frozen=True)
class ItemRef:
    """What a ticket or waitlist entry points at."""
    kind: ItemKind
    item_id: UUID
