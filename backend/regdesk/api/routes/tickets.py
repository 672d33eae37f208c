"""Ticket Routes — check-in validation of scanned QR tokens."""

from fastapi import APIRouter, Depends

from regdesk.api.dependencies import get_ticket_issuer
from regdesk.schemas.tickets import TicketValidateRequest, TicketValidationResponse
from regdesk.services.tickets import TicketIssuer

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


@router.post("/validate", response_model=TicketValidationResponse)
async def validate_ticket(
    body: TicketValidateRequest, tickets: TicketIssuer = Depends(get_ticket_issuer),
):
    """Always 200: an invalid ticket is a normal scan result, not an error."""
    result = await tickets.validate(body.qr_token, body.item_id)
    return TicketValidationResponse(
        valid=result.valid,
        message=result.message,
        ticket_id=result.ticket_id,
        holder_name=result.holder_name,
    )
