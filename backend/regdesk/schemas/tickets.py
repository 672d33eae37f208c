"""Ticket Check-in Schemas."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class TicketValidateRequest(BaseModel):
    qr_token: str = Field(min_length=1, max_length=128)
    item_id: UUID

    @field_validator("qr_token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("qr_token cannot be empty or whitespace")
        return v


class TicketValidationResponse(BaseModel):
    valid: bool
    message: str
    ticket_id: UUID | None = None
    holder_name: str | None = None
