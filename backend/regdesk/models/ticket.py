"""Ticket ORMs — QR-bearing proof of an ACTIVE registration.

Invariants:
    - Created only by the ticket issuer during fulfillment
    - qr_token is opaque, random and globally unique
    - Course tickets: at most one ACTIVE per (holder, item) — partial unique index
    - Event tickets: one per purchased unit, unique (registration, sequence) and
      unique (order, sequence)
    - VOID tickets are kept for audit; voiding frees the (holder, item) slot

Design Decisions:
    - Two tables because the uniqueness rules differ; columns are identical so
      the validation path treats them alike
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from regdesk.db.base import Base

_ACTIVE = text("status = 'ACTIVE'")


class Ticket(Base):
    """Course ticket — one per holder per course track."""
    __tablename__ = "tickets"
    __table_args__ = (
        Index(
            "uq_tickets_active_holder_item", "holder_id", "item_id",
            unique=True, postgresql_where=_ACTIVE, sqlite_where=_ACTIVE,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    registration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("registrations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id"), nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False,
    )
    qr_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="ACTIVE",
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="tickets")


class EventTicket(Base):
    """Event ticket — one per purchased unit."""
    __tablename__ = "event_tickets"
    __table_args__ = (
        UniqueConstraint(
            "registration_id", "sequence", name="uq_event_tickets_registration_seq",
        ),
        UniqueConstraint("order_id", "sequence", name="uq_event_tickets_order_seq"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    registration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("registrations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    holder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id"), nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("items.id"), nullable=False,
    )
    qr_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="ACTIVE",
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="event_tickets")
