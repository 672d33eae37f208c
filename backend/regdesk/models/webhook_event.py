"""WebhookEvent ORM — idempotency ledger for inbound payment events.

Invariants:
    - id is the provider's event id (natural key) — the row is the mutex
    - Row inserted (PROCESSING) before any side effect; insert-if-absent only
    - Always leaves PROCESSING: PROCESSED on success, FAILED with error_message
    - FAILED rows are not retried automatically (manual reconciliation)
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from regdesk.db.base import Base


class WebhookEvent(Base):
    """Ledger row per provider event id."""
    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="PROCESSING",
    )
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
