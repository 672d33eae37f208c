"""Payment Event Schemas — acknowledgement returned to the provider."""

from pydantic import BaseModel

from regdesk.core.domain_types import AdmissionOutcome, WebhookStatus


class PaymentEventAck(BaseModel):
    """Always `received: true`: duplicates and recorded failures included."""
    received: bool = True
    event_id: str
    outcome: AdmissionOutcome
    status: WebhookStatus
