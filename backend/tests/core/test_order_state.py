"""Order State Machine — verifies the transition tables and their couplings.

Tests:
    - Every legal order transition is accepted, everything else raises
    - Registration ACTIVE requires a PAID order
    - Totals are mutable only while DRAFT
    - Order transitions cascade to the matching registration status
"""

import itertools

import pytest

from regdesk.core.domain_types import OrderStatus, RegistrationStatus
from regdesk.core.errors import ErrorCategory, InvalidTransitionError
from regdesk.core.order_state import (
    ORDER_TRANSITIONS,
    assert_totals_mutable,
    can_transition_order,
    cascade_status,
    check_order_transition,
    check_registration_transition,
    holds_seat,
)


def test_legal_order_transitions():
    assert can_transition_order(OrderStatus.DRAFT, OrderStatus.PENDING_PAYMENT)
    assert can_transition_order(OrderStatus.PENDING_PAYMENT, OrderStatus.PAID)
    assert can_transition_order(OrderStatus.PAID, OrderStatus.REFUNDED)
    assert can_transition_order(OrderStatus.DRAFT, OrderStatus.CANCELLED)
    assert can_transition_order(OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED)


def test_every_other_order_transition_raises():
    for current, target in itertools.product(OrderStatus, OrderStatus):
        if (current, target) in ORDER_TRANSITIONS:
            continue
        with pytest.raises(InvalidTransitionError):
            check_order_transition(current, target)


def test_paid_cannot_be_cancelled():
    with pytest.raises(InvalidTransitionError) as exc:
        check_order_transition(OrderStatus.PAID, OrderStatus.CANCELLED)
    assert exc.value.category == ErrorCategory.INTEGRITY
    assert exc.value.http_status == 409


def test_draft_cannot_jump_to_paid():
    assert not can_transition_order(OrderStatus.DRAFT, OrderStatus.PAID)


def test_registration_active_requires_paid_order():
    with pytest.raises(InvalidTransitionError):
        check_registration_transition(
            RegistrationStatus.PENDING_PAYMENT,
            RegistrationStatus.ACTIVE,
            OrderStatus.PENDING_PAYMENT,
        )
    check_registration_transition(
        RegistrationStatus.PENDING_PAYMENT,
        RegistrationStatus.ACTIVE,
        OrderStatus.PAID,
    )


def test_active_registration_can_be_cancelled_alone():
    check_registration_transition(
        RegistrationStatus.ACTIVE, RegistrationStatus.CANCELLED, OrderStatus.PAID,
    )


def test_cancelled_registration_is_terminal():
    with pytest.raises(InvalidTransitionError):
        check_registration_transition(
            RegistrationStatus.CANCELLED, RegistrationStatus.ACTIVE, OrderStatus.PAID,
        )


def test_totals_only_mutable_in_draft():
    assert_totals_mutable(OrderStatus.DRAFT)
    for status in (OrderStatus.PENDING_PAYMENT, OrderStatus.PAID, OrderStatus.REFUNDED):
        with pytest.raises(InvalidTransitionError):
            assert_totals_mutable(status)


def test_cascade_status():
    assert cascade_status(OrderStatus.PAID) == RegistrationStatus.ACTIVE
    assert cascade_status(OrderStatus.CANCELLED) == RegistrationStatus.CANCELLED
    assert cascade_status(OrderStatus.DRAFT) is None


def test_seat_holding():
    assert holds_seat(RegistrationStatus.PENDING_PAYMENT)
    assert holds_seat(RegistrationStatus.ACTIVE)
    assert not holds_seat(RegistrationStatus.DRAFT)
    assert not holds_seat(RegistrationStatus.REFUNDED)
