"""Payment Events — inbound provider notifications (signature already verified upstream).

Invariants:
    - Every event passes through PaymentEventGuard before any side effect
    - Admitted, duplicate and recorded-as-FAILED events all answer 200, so the
      provider stops redelivering; failures surface in logs and the ledger
    - A body without id/type is rejected with 400 before touching the ledger
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from regdesk.api.dependencies import get_payment_event_guard, get_payment_event_handler
from regdesk.core.payment_events import parse_payment_event
from regdesk.schemas.payments import PaymentEventAck
from regdesk.services.payment_event_guard import PaymentEventGuard
from regdesk.services.payment_event_handler import PaymentEventHandler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post("/events", response_model=PaymentEventAck)
async def receive_payment_event(
    body: dict[str, Any] = Body(...),
    guard: PaymentEventGuard = Depends(get_payment_event_guard),
    handler: PaymentEventHandler = Depends(get_payment_event_handler),
):
    """Admit a provider event and run it at most once."""
    event = parse_payment_event(body)
    result = await guard.process(event, handler.handle)
    return PaymentEventAck(
        event_id=event.id, outcome=result.outcome, status=result.status,
    )
