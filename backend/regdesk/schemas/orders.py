"""Order Schemas — Pydantic models for order, registration and ticket payloads.

Invariants:
    - OrderCreate.lines: at least one line; quantity ≥ 1; discount ≥ 0
    - Responses expose monetary fields in minor units (cents), never floats
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from regdesk.core.domain_types import OrderKind


class OrderLineCreate(BaseModel):
    holder_id: UUID
    item_id: UUID
    quantity: int = Field(1, ge=1, le=100)


class OrderCreate(BaseModel):
    """Draft order request."""
    tenant_id: UUID
    purchaser_id: UUID
    kind: OrderKind
    lines: list[OrderLineCreate] = Field(min_length=1, max_length=50)
    discount_cents: int = Field(0, ge=0)


class ReasonBody(BaseModel):
    """Optional free-text reason for cancellations and refunds."""
    reason: str | None = Field(None, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None


class FulfillRequest(BaseModel):
    """Manual reconciliation: fulfill an order with known provider refs."""
    session_ref: str | None = Field(None, max_length=255)
    charge_ref: str | None = Field(None, max_length=255)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    registration_id: UUID
    holder_id: UUID
    item_id: UUID
    sequence: int
    qr_token: str
    status: str


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    holder_id: UUID
    item_id: UUID
    status: str
    quantity: int
    unit_price_cents: int | None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    purchaser_id: UUID
    kind: str
    status: str
    order_number: str | None
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    vat_rate: Decimal
    currency: str
    payment_session_ref: str | None = None
    charge_ref: str | None = None
    created_at: datetime
    submitted_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None
    registrations: list[RegistrationResponse] = []
    tickets: list[TicketResponse] = []
    event_tickets: list[TicketResponse] = []


class FulfillmentResponse(BaseModel):
    order_id: UUID
    status: str
    order_number: str | None
    already_paid: bool
    documents_delivered: bool
    tickets: list[TicketResponse]
