"""Error Hierarchy — verifies codes, categories and the REST envelope.

Tests:
    - Integrity errors are CRITICAL and map to 409
    - OfferExpired is a WARNING mapped to 410 and carries the entry id
    - to_response() exposes code, message and context ids only
"""

from regdesk.core.errors import (
    CapacityExceededError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidStateError,
    OfferExpiredError,
    PaymentProviderError,
    ResourceNotFoundError,
)


def test_invalid_state_is_critical_integrity():
    err = InvalidStateError("Order is CANCELLED", "CANCELLED")
    assert err.category == ErrorCategory.INTEGRITY
    assert err.severity == ErrorSeverity.CRITICAL
    assert err.http_status == 409


def test_offer_expired_carries_entry_id():
    err = OfferExpiredError("entry-1")
    assert err.http_status == 410
    assert err.severity == ErrorSeverity.WARNING
    assert err.to_response()["error"]["context"]["entry_id"] == "entry-1"


def test_not_found_message():
    err = ResourceNotFoundError("Order", "abc")
    assert err.http_status == 404
    assert "Order 'abc' not found" in err.message


def test_capacity_exceeded_fields():
    err = CapacityExceededError("item-1", requested=2, available=1)
    assert err.code == "CAPACITY_EXCEEDED"
    assert (err.requested, err.available) == (2, 1)


def test_response_envelope_prefers_user_message():
    err = PaymentProviderError(
        "boom", "APIError", ErrorContext(order_id="o1", user_message="Try again later"),
    )
    body = err.to_response()["error"]
    assert body["code"] == "PAYMENT_PROVIDER_ERROR"
    assert body["message"] == "Try again later"
    assert body["context"]["order_id"] == "o1"
    assert body["category"] == "external_api"
