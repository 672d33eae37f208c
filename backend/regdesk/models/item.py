"""Item ORM — a sellable course track or event.

Invariants:
    - kind ∈ ItemKind (COURSE_TRACK | EVENT)
    - released_seats counts capacity freed by cancellations/refunds that the
      waitlist has not yet handed to an accepted offer; never negative
    - unit_price_cents is VAT-exclusive

Design Decisions:
    - One table for both kinds, tagged by `kind`: the waitlist and ticket issuer
      branch on the tag instead of on a class hierarchy
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from regdesk.db.base import Base


class Item(Base):
    """Catalog item with capacity."""
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("released_seats >= 0", name="ck_items_released_seats"),
        CheckConstraint("unit_price_cents >= 0", name="ck_items_unit_price"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    series_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    released_seats: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
