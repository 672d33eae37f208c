"""Payment Event Guard — at-most-once execution per provider event id.

Invariants:
    - The ledger row (PROCESSING) is committed BEFORE the handler runs
    - A duplicate id short-circuits with no side effects: ALREADY_PROCESSED
      (row PROCESSED or FAILED) or ALREADY_PROCESSING (row still PROCESSING)
    - After an admitted run the row always leaves PROCESSING: PROCESSED on
      success, FAILED with the error text when the handler raised
    - The FAILED mark is written in a fresh transaction, after rolling back
      whatever the handler left half-done
    - FAILED rows are never retried here; recovery is manual reconciliation

Design Decisions:
    - Duplicates are AdmissionOutcome values, not exceptions: the HTTP layer
      answers them like successes so the provider stops redelivering
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.core.domain_types import AdmissionOutcome, InsertOutcome, WebhookStatus
from regdesk.core.errors import ErrorCategory, RegDeskError
from regdesk.core.payment_events import PaymentEvent
from regdesk.infrastructure.storage import insert_if_absent
from regdesk.models.webhook_event import WebhookEvent
from regdesk.services import utc_now

logger = logging.getLogger(__name__)

ERROR_MESSAGE_MAX = 2000

EventHandler = Callable[[PaymentEvent], Awaitable[Any]]


@dataclass(frozen=True)
class GuardResult:
    outcome: AdmissionOutcome
    status: WebhookStatus
    error: str | None = None


class PaymentEventGuard:
    """Idempotency ledger in front of the payment event handler."""

    def __init__(
        self, db: AsyncSession, clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.clock = clock

    async def admit(self, event: PaymentEvent) -> AdmissionOutcome:
        """Claim the event id. Only ADMITTED lets the caller cause side effects."""
        outcome = await insert_if_absent(self.db, WebhookEvent, {
            "id": event.id,
            "type": event.type,
            "status": WebhookStatus.PROCESSING.value,
            "payload": event.raw,
            "received_at": self.clock(),
        })
        await self.db.commit()
        if outcome == InsertOutcome.INSERTED:
            return AdmissionOutcome.ADMITTED

        status = await self._current_status(event.id)
        if status == WebhookStatus.PROCESSING:
            return AdmissionOutcome.ALREADY_PROCESSING
        return AdmissionOutcome.ALREADY_PROCESSED

    async def process(
        self, event: PaymentEvent, handler: EventHandler,
    ) -> GuardResult:
        """Admit, run the handler once, record the result on the ledger."""
        outcome = await self.admit(event)
        if outcome != AdmissionOutcome.ADMITTED:
            status = await self._current_status(event.id)
            logger.info(
                f"Duplicate payment event ({outcome.value}); skipped",
                extra={"event_id": event.id, "event_type": event.type,
                       "outcome": outcome.value},
            )
            return GuardResult(outcome, status)

        try:
            await handler(event)
        except Exception as e:
            await self.db.rollback()
            error = f"{type(e).__name__}: {e}"[:ERROR_MESSAGE_MAX]
            await self._finish(event.id, WebhookStatus.FAILED, error)
            self._log_failure(event, e)
            return GuardResult(outcome, WebhookStatus.FAILED, error)

        await self._finish(event.id, WebhookStatus.PROCESSED, None)
        logger.info(
            "Payment event processed",
            extra={"event_id": event.id, "event_type": event.type},
        )
        return GuardResult(outcome, WebhookStatus.PROCESSED)

    async def _finish(
        self, event_id: str, status: WebhookStatus, error: str | None,
    ) -> None:
        await self.db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == event_id)
            .values(
                status=status.value,
                processed_at=self.clock(),
                error_message=error,
            )
            .execution_options(synchronize_session=False),
        )
        await self.db.commit()

    async def _current_status(self, event_id: str) -> WebhookStatus:
        row = await self.db.get(WebhookEvent, event_id, populate_existing=True)
        return WebhookStatus(row.status)

    def _log_failure(self, event: PaymentEvent, error: Exception) -> None:
        extra = {"event_id": event.id, "event_type": event.type}
        if isinstance(error, RegDeskError):
            extra["error_code"] = error.code
            if error.category == ErrorCategory.INTEGRITY:
                logger.critical(
                    f"Payment event hit an integrity error; manual reconciliation "
                    f"required: {error.message}",
                    extra=extra,
                )
                return
        logger.error(
            f"Payment event handler failed: {error}", extra=extra, exc_info=error,
        )
