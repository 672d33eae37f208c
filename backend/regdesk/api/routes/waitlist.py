"""Waitlist Routes — join, offer, accept, decline, sweep.

Invariants:
    - Accepting after expiry answers 410 (OfferExpiredError) and the queue has
      already advanced by the time the response is sent
    - /sweep is the hook for an external scheduler; safe to call concurrently
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from regdesk.api.dependencies import get_waitlist_manager
from regdesk.schemas.waitlist import (
    AcceptResponse, OfferNextResponse, SweepResponse, WaitlistEntryResponse,
    WaitlistJoin, WaitlistJoinResponse,
)
from regdesk.services.waitlist import WaitlistManager

router = APIRouter(prefix="/api/v1/waitlist", tags=["waitlist"])


@router.post("", response_model=WaitlistJoinResponse)
async def join_waitlist(
    body: WaitlistJoin, waitlist: WaitlistManager = Depends(get_waitlist_manager),
):
    result = await waitlist.enqueue(body.item_id, body.holder_id)
    response = WaitlistJoinResponse(
        entry=WaitlistEntryResponse.model_validate(result.entry),
        created=result.created,
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content=response.model_dump(mode="json"),
    )


@router.post("/items/{item_id}/offer-next", response_model=OfferNextResponse)
async def offer_next(
    item_id: UUID, waitlist: WaitlistManager = Depends(get_waitlist_manager),
):
    entry = await waitlist.offer_next(item_id)
    return OfferNextResponse(
        offered=entry is not None,
        entry=WaitlistEntryResponse.model_validate(entry) if entry else None,
    )


@router.post("/{entry_id}/accept", response_model=AcceptResponse)
async def accept_offer(
    entry_id: UUID, waitlist: WaitlistManager = Depends(get_waitlist_manager),
):
    order_id = await waitlist.accept_offer(entry_id)
    return AcceptResponse(entry_id=entry_id, order_id=order_id)


@router.post("/{entry_id}/decline", response_model=WaitlistEntryResponse)
async def decline_offer(
    entry_id: UUID, waitlist: WaitlistManager = Depends(get_waitlist_manager),
):
    return WaitlistEntryResponse.model_validate(
        await waitlist.decline_offer(entry_id),
    )


@router.post("/sweep", response_model=SweepResponse)
async def sweep_expired(
    item_id: UUID | None = Query(None),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
):
    result = await waitlist.sweep_expired(item_id)
    return SweepResponse(expired=result.expired, offered=result.offered)
