"""Payment Events — pure parsing and classification of provider notifications.

Invariants:
    - Input is a provider event that already passed signature verification
    - PaymentEvent.id is the provider's event id (idempotency natural key)
    - order_ref comes from data.object.metadata.orderId, or None
    - charge_ref is the payment intent id when present, else a charge id
    - A thin payload is an object with at most 3 keys and must be resolved
      through the gateway before any field other than id is trusted

Design Decisions:
    - Event type routing lives in sets, not if-chains: the handler asks
      "is this a fulfillment event?" rather than matching strings inline
    - Both immediate and delayed (async) payment success trigger fulfillment
"""

from dataclasses import dataclass, field
from typing import Any

from regdesk.core.errors import ValidationError

CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHARGE_REFUNDED = "charge.refunded"
ACCOUNT_UPDATED = "account.updated"

FULFILLMENT_EVENT_TYPES: frozenset[str] = frozenset({
    CHECKOUT_COMPLETED,
    ASYNC_PAYMENT_SUCCEEDED,
})

THIN_PAYLOAD_MAX_KEYS = 3


@dataclass(frozen=True)
class PaymentEvent:
    """Inbound provider event reduced to what the core acts on."""
    id: str
    type: str
    order_ref: str | None = None
    charge_ref: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def object(self) -> dict[str, Any]:
        return event_object(self.raw)


def event_object(body: dict[str, Any]) -> dict[str, Any]:
    data = body.get("data") or {}
    obj = data.get("object") or {}
    return obj if isinstance(obj, dict) else {}


def extract_order_ref(obj: dict[str, Any]) -> str | None:
    metadata = obj.get("metadata") or {}
    ref = metadata.get("orderId") or metadata.get("order_id")
    return str(ref) if ref else None


def extract_charge_ref(obj: dict[str, Any]) -> str | None:
    ref = obj.get("payment_intent")
    if isinstance(ref, dict):
        ref = ref.get("id")
    if ref:
        return str(ref)
    if obj.get("object") == "charge" and obj.get("id"):
        return str(obj["id"])
    return None


def parse_payment_event(body: dict[str, Any]) -> PaymentEvent:
    """Provider event JSON → PaymentEvent. Raises ValidationError on missing id/type."""
    event_id = body.get("id")
    event_type = body.get("type")
    if not event_id or not isinstance(event_id, str):
        raise ValidationError("Payment event is missing its id", "id")
    if not event_type or not isinstance(event_type, str):
        raise ValidationError("Payment event is missing its type", "type")
    obj = event_object(body)
    return PaymentEvent(
        id=event_id,
        type=event_type,
        order_ref=extract_order_ref(obj),
        charge_ref=extract_charge_ref(obj),
        raw=body,
    )


def with_resolved_object(event: PaymentEvent, full_object: dict[str, Any]) -> PaymentEvent:
    """Rebuild the event around a fully resolved provider object."""
    raw = dict(event.raw)
    raw["data"] = {**(raw.get("data") or {}), "object": full_object}
    return PaymentEvent(
        id=event.id,
        type=event.type,
        order_ref=extract_order_ref(full_object) or event.order_ref,
        charge_ref=extract_charge_ref(full_object) or event.charge_ref,
        raw=raw,
    )


def is_thin_payload(obj: dict[str, Any] | None) -> bool:
    if not obj:
        return True
    return len(obj) <= THIN_PAYLOAD_MAX_KEYS


def is_fulfillment_event(event_type: str) -> bool:
    return event_type in FULFILLMENT_EVENT_TYPES


def is_payment_pending(obj: dict[str, Any]) -> bool:
    """A completed checkout paid by a delayed method settles later (async_payment_succeeded)."""
    return obj.get("payment_status") == "unpaid"


def is_full_refund(obj: dict[str, Any]) -> bool:
    """charge.refunded covers partial refunds too; only full ones refund the order."""
    if obj.get("refunded") is True:
        return True
    amount = obj.get("amount")
    refunded = obj.get("amount_refunded")
    return amount is not None and refunded is not None and refunded >= amount > 0
