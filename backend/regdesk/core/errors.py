"""Error Hierarchy — typed, categorized exceptions for all regdesk failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Integrity errors (InvalidState, InvalidTransition) are CRITICAL and never retried
    - OfferExpired is a WARNING: expected, the caller advances the queue
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with RegDeskError base: FastAPI global handler catches all
    - Duplicate payment events are NOT errors: they are AdmissionOutcome values
      (core/domain_types.py), so they can never be mistaken for failures
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    INTEGRITY = "integrity"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    order_id: str | None = None
    event_id: str | None = None
    entry_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class RegDeskError(Exception):
    """Base exception for all regdesk errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "order_id": self.context.order_id,
                    "event_id": self.context.event_id,
                    "entry_id": self.context.entry_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(RegDeskError):
    """Input violates a domain rule before anything is written."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(RegDeskError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidTransitionError(RegDeskError):
    """A status change outside the transition table was requested."""
    def __init__(
        self,
        entity: str,
        current: str,
        target: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{entity} cannot move from {current} to {target}",
            "INVALID_TRANSITION", ErrorCategory.INTEGRITY,
            ErrorSeverity.CRITICAL, context, 409,
        )
        self.entity = entity
        self.current = current
        self.target = target


class InvalidStateError(RegDeskError):
    """Entity is in a state the operation can never legally start from."""
    def __init__(
        self,
        message: str,
        current: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INVALID_STATE", ErrorCategory.INTEGRITY,
            ErrorSeverity.CRITICAL, context, 409,
        )
        self.current = current


class OfferExpiredError(RegDeskError):
    """Waitlist offer was accepted at or after its expiry instant."""
    def __init__(self, entry_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.entry_id = entry_id
        super().__init__(
            f"Waitlist offer '{entry_id}' has expired",
            "OFFER_EXPIRED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, ctx, 410,
        )


class CapacityExceededError(RegDeskError):
    """Not enough unreserved seats left on an item."""
    def __init__(
        self, item_id: str, requested: int, available: int,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Item '{item_id}' has {available} seat(s) left, {requested} requested",
            "CAPACITY_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class ConcurrencyError(RegDeskError):
    """Concurrent modification detected."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(RegDeskError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PaymentProviderError(RegDeskError):
    """Payment provider API call failed."""
    def __init__(
        self,
        message: str,
        provider_error_type: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Payment provider error ({provider_error_type}): {message}",
            "PAYMENT_PROVIDER_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 502,
        )
        self.provider_error_type = provider_error_type
