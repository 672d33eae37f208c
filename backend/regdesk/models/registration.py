"""Registration ORM — a holder's claim on a course track or event seat(s).

Invariants:
    - Belongs to exactly one Order (order_id FK)
    - status mirrors the order but can be cancelled independently
    - ACTIVE only while the owning order is PAID
    - quantity is 1 for course registrations; ≥1 for events
    - unit_price_cents snapshot is nullable for rows created before prices were stored

Design Decisions:
    - Course and event registrations share a table; Order.kind is the tag
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from regdesk.db.base import Base


class Registration(Base):
    """Registration entity — owned by an order."""
    __tablename__ = "registrations"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_registrations_quantity"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id"), nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False, index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="DRAFT",
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    order: Mapped["Order"] = relationship(
        "Order", back_populates="registrations",
    )
    item: Mapped["Item"] = relationship("Item", lazy="selectin")
    holder: Mapped["Person"] = relationship("Person", lazy="selectin")
