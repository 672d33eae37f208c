"""Registration Routes — cancel a single registration."""

from uuid import UUID

from fastapi import APIRouter, Depends

from regdesk.api.dependencies import get_order_service
from regdesk.schemas.orders import ReasonBody, RegistrationResponse
from regdesk.services.orders import OrderService

router = APIRouter(prefix="/api/v1/registrations", tags=["registrations"])


@router.post("/{registration_id}/cancel", response_model=RegistrationResponse)
async def cancel_registration(
    registration_id: UUID,
    body: ReasonBody | None = None,
    orders: OrderService = Depends(get_order_service),
):
    """Cancel one registration; its tickets are voided and its seats released."""
    registration = await orders.cancel_registration(
        registration_id, body.reason if body else None,
    )
    return RegistrationResponse.model_validate(registration)
