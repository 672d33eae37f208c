"""Order State Machine — legal status transitions for orders and registrations.

Invariants:
    - DRAFT → PENDING_PAYMENT (submission, totals snapshot)
    - PENDING_PAYMENT → PAID (fulfillment only)
    - DRAFT | PENDING_PAYMENT → CANCELLED (cascades to registrations)
    - PAID → REFUNDED (credit-note eligible; capacity freed separately)
    - Anything else raises InvalidTransitionError — never silently allowed
    - Totals may only be written while DRAFT; frozen from PAID onward
    - A registration reaches ACTIVE only when its order is PAID

Design Decisions:
    - Transition tables as frozensets of pairs: the whole machine is reviewable
      at a glance and tests can enumerate it
"""

from regdesk.core.domain_types import OrderStatus, RegistrationStatus
from regdesk.core.errors import ErrorContext, InvalidTransitionError

ORDER_TRANSITIONS: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset({
    (OrderStatus.DRAFT, OrderStatus.PENDING_PAYMENT),
    (OrderStatus.PENDING_PAYMENT, OrderStatus.PAID),
    (OrderStatus.DRAFT, OrderStatus.CANCELLED),
    (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED),
    (OrderStatus.PAID, OrderStatus.REFUNDED),
})

REGISTRATION_TRANSITIONS: frozenset[
    tuple[RegistrationStatus, RegistrationStatus]
] = frozenset({
    (RegistrationStatus.DRAFT, RegistrationStatus.PENDING_PAYMENT),
    (RegistrationStatus.PENDING_PAYMENT, RegistrationStatus.ACTIVE),
    (RegistrationStatus.DRAFT, RegistrationStatus.CANCELLED),
    (RegistrationStatus.PENDING_PAYMENT, RegistrationStatus.CANCELLED),
    (RegistrationStatus.ACTIVE, RegistrationStatus.CANCELLED),
    (RegistrationStatus.ACTIVE, RegistrationStatus.REFUNDED),
})

# Registrations that hold a seat against item capacity.
SEAT_HOLDING_STATUSES: frozenset[RegistrationStatus] = frozenset({
    RegistrationStatus.PENDING_PAYMENT,
    RegistrationStatus.ACTIVE,
})

def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return (current, target) in ORDER_TRANSITIONS


def check_order_transition(
    current: OrderStatus,
    target: OrderStatus,
    context: ErrorContext | None = None,
) -> None:
    """Raise InvalidTransitionError unless current → target is legal."""
    if not can_transition_order(current, target):
        raise InvalidTransitionError(
            "Order", current.value, target.value, context,
        )


def check_registration_transition(
    current: RegistrationStatus,
    target: RegistrationStatus,
    order_status: OrderStatus,
    context: ErrorContext | None = None,
) -> None:
    """Registration rules plus the ACTIVE-requires-PAID coupling."""
    if (current, target) not in REGISTRATION_TRANSITIONS:
        raise InvalidTransitionError(
            "Registration", current.value, target.value, context,
        )
    if target == RegistrationStatus.ACTIVE and order_status != OrderStatus.PAID:
        raise InvalidTransitionError(
            "Registration", current.value, target.value,
            context or ErrorContext(
                debug_info={"order_status": order_status.value},
            ),
        )


def assert_totals_mutable(
    status: OrderStatus, context: ErrorContext | None = None,
) -> None:
    """Totals are snapshotted once, on DRAFT → PENDING_PAYMENT."""
    if status != OrderStatus.DRAFT:
        raise InvalidTransitionError(
            "Order totals", status.value, "rewritten", context,
        )


def cascade_status(target: OrderStatus) -> RegistrationStatus | None:
    """Registration status that follows an order transition, if any."""
    return {
        OrderStatus.PENDING_PAYMENT: RegistrationStatus.PENDING_PAYMENT,
        OrderStatus.PAID: RegistrationStatus.ACTIVE,
        OrderStatus.CANCELLED: RegistrationStatus.CANCELLED,
        OrderStatus.REFUNDED: RegistrationStatus.REFUNDED,
    }.get(target)


def holds_seat(status: RegistrationStatus) -> bool:
    return status in SEAT_HOLDING_STATUSES
