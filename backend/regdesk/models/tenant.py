"""Tenant ORM — an organizer selling courses/events; the seller on every receipt.

Invariants:
    - Seller legal info (legal_name, organization_number) lives here, not on orders
    - vat_rate is a percentage (25.00 = 25 %), applied only when vat_registered
    - order_prefix + per-tenant counter form order numbers (see OrderNumberCounter)

Design Decisions:
    - Counter in its own row/table: the increment-and-read UPDATE locks one small
      row instead of the tenant row that every request reads
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from regdesk.db.base import Base


class Tenant(Base):
    """Tenant (organizer) — owns items, orders and waitlists."""
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    legal_name: Mapped[str] = mapped_column(String(200), nullable=False)
    organization_number: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )
    street: Mapped[str | None] = mapped_column(Text, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    vat_registered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    vat_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NOK")
    order_prefix: Mapped[str] = mapped_column(
        String(10), nullable=False, default="ORD",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def effective_vat_rate(self) -> Decimal:
        """Rate charged on new orders: zero unless VAT-registered."""
        return self.vat_rate if self.vat_registered else Decimal("0")


class OrderNumberCounter(Base):
    """Per-tenant monotonic order-number source. Gaps allowed, duplicates never."""
    __tablename__ = "order_number_counters"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), primary_key=True,
    )
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
