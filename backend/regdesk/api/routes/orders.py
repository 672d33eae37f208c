"""Order Routes — draft, submit, cancel, refund, manual fulfillment, lookup.

Invariants:
    - Domain errors propagate to the global handler (404/409/410 envelopes)
    - Every mutation returns the reloaded order, never the pre-change object
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from regdesk.api.dependencies import get_fulfillment_service, get_order_service
from regdesk.schemas.orders import (
    FulfillmentResponse, FulfillRequest, OrderCreate, OrderResponse, ReasonBody,
    TicketResponse,
)
from regdesk.services.fulfillment import FulfillmentService
from regdesk.services.orders import OrderLineRequest, OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.post(
    "", response_model=OrderResponse, status_code=status.HTTP_201_CREATED,
)
async def create_order(
    body: OrderCreate, orders: OrderService = Depends(get_order_service),
):
    """Create a DRAFT order with one registration per line."""
    order = await orders.create_draft_order(
        body.tenant_id,
        body.purchaser_id,
        body.kind,
        [
            OrderLineRequest(line.holder_id, line.item_id, line.quantity)
            for line in body.lines
        ],
        body.discount_cents,
    )
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID, orders: OrderService = Depends(get_order_service),
):
    return OrderResponse.model_validate(await orders.get_order(order_id))


@router.post("/{order_id}/submit", response_model=OrderResponse)
async def submit_order(
    order_id: UUID, orders: OrderService = Depends(get_order_service),
):
    """DRAFT → PENDING_PAYMENT; totals are frozen from here on."""
    return OrderResponse.model_validate(await orders.submit_order(order_id))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    body: ReasonBody | None = None,
    orders: OrderService = Depends(get_order_service),
):
    return OrderResponse.model_validate(
        await orders.cancel_order(order_id, body.reason if body else None),
    )


@router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(
    order_id: UUID,
    body: ReasonBody | None = None,
    orders: OrderService = Depends(get_order_service),
):
    return OrderResponse.model_validate(
        await orders.refund_order(order_id, body.reason if body else None),
    )


@router.post("/{order_id}/fulfill", response_model=FulfillmentResponse)
async def fulfill_order(
    order_id: UUID,
    body: FulfillRequest | None = None,
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """Manual reconciliation path; same idempotent orchestrator as the webhook."""
    body = body or FulfillRequest()
    result = await fulfillment.fulfill(order_id, body.session_ref, body.charge_ref)
    return FulfillmentResponse(
        order_id=result.order_id,
        status=result.status.value,
        order_number=result.order_number,
        already_paid=result.already_paid,
        documents_delivered=result.documents_delivered,
        tickets=[TicketResponse.model_validate(t) for t in result.tickets],
    )
