"""Waitlist Schemas — enqueue, entry and sweep payloads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class WaitlistJoin(BaseModel):
    item_id: UUID
    holder_id: UUID


class WaitlistEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    item_id: UUID
    holder_id: UUID
    status: str
    enqueued_at: datetime
    offered_until: datetime | None = None
    accepted_order_id: UUID | None = None
    resolved_at: datetime | None = None


class WaitlistJoinResponse(BaseModel):
    entry: WaitlistEntryResponse
    created: bool


class OfferNextResponse(BaseModel):
    offered: bool
    entry: WaitlistEntryResponse | None = None


class AcceptResponse(BaseModel):
    entry_id: UUID
    order_id: UUID


class SweepResponse(BaseModel):
    expired: int
    offered: int
