"""Order ORM — one purchase transaction; aggregate root for registrations and tickets.

Invariants:
    - status transitions only via core/order_state.py
    - total_cents == subtotal_cents - discount_cents + tax_cents (DB check constraint)
    - Monetary columns written once, at submission; frozen from PAID onward
    - order_number assigned exactly once, unique per tenant
    - Owns its registrations, course tickets and event tickets (cascade delete)

Design Decisions:
    - kind column is the course/event variant tag; no subclassing
    - Provider refs stored on the order: a charge.refunded event finds the order
      through charge_ref
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Integer, Numeric, DateTime, ForeignKey, CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from regdesk.core.money import OrderTotals
from regdesk.db.base import Base


class Order(Base):
    """Order aggregate root."""
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "total_cents = subtotal_cents - discount_cents + tax_cents",
            name="ck_orders_total",
        ),
        UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False,
    )
    purchaser_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("persons.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="DRAFT",
    )

    # Monetary snapshot (minor units)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requested_discount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vat_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NOK")

    order_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    payment_session_ref: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    charge_ref: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    refunded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Relationships
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="order",
        cascade="all, delete-orphan", lazy="selectin",
        order_by="Registration.created_at",
    )
    tickets: Mapped[list["Ticket"]] = relationship(
        "Ticket", back_populates="order",
        cascade="all, delete-orphan", lazy="selectin",
    )
    event_tickets: Mapped[list["EventTicket"]] = relationship(
        "EventTicket", back_populates="order",
        cascade="all, delete-orphan", lazy="selectin",
    )

    @property
    def totals(self) -> OrderTotals:
        return OrderTotals(
            subtotal_cents=self.subtotal_cents,
            discount_cents=self.discount_cents,
            tax_cents=self.tax_cents,
            total_cents=self.total_cents,
            vat_rate=Decimal(str(self.vat_rate)),
            currency=self.currency,
        )

    def snapshot_totals(self, totals: OrderTotals) -> None:
        """Write the monetary snapshot. Callers check mutability first."""
        self.subtotal_cents = totals.subtotal_cents
        self.discount_cents = totals.discount_cents
        self.tax_cents = totals.tax_cents
        self.total_cents = totals.total_cents
        self.vat_rate = totals.vat_rate
        self.currency = totals.currency
