"""WaitlistEntry ORM — a holder queued for a sold-out item.

Invariants:
    - At most one QUEUED/OFFERED entry per (holder, item) — partial unique index
    - At most one OFFERED entry per item — partial unique index
    - offered_until set only while OFFERED
    - accepted_order_id references (does not own) the order created on accept

Design Decisions:
    - Both "at most one" rules are indexes, not application checks alone: the
      conditional UPDATE that creates offers is backed by the database
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from regdesk.db.base import Base

_OFFERED = text("status = 'OFFERED'")
_ACTIVE = text("status IN ('QUEUED', 'OFFERED')")


class WaitlistEntry(Base):
    """Queue position on an item's waitlist."""
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index(
            "uq_waitlist_one_offer_per_item", "item_id",
            unique=True, postgresql_where=_OFFERED, sqlite_where=_OFFERED,
        ),
        Index(
            "uq_waitlist_active_holder_item", "holder_id", "item_id",
            unique=True, postgresql_where=_ACTIVE, sqlite_where=_ACTIVE,
        ),
        Index("ix_waitlist_item_queue", "item_id", "status", "enqueued_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False,
    )
    holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="QUEUED",
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    offered_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    accepted_order_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
