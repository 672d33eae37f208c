"""Waitlist State — pure rules for the offer lifecycle.

Invariants:
    - QUEUED → OFFERED → {ACCEPTED, DECLINED, EXPIRED}; QUEUED → DECLINED (leaving)
    - ACCEPTED, DECLINED, EXPIRED are terminal
    - An offer is acceptable only while now < offered_until (boundary exclusive)
    - An offer is expired once now >= offered_until

Design Decisions:
    - Naive datetimes are read as UTC: SQLite hands back naive values, Postgres
      aware ones, and comparisons must agree on both
"""

from datetime import datetime, timedelta, timezone

from regdesk.core.domain_types import WaitlistStatus
from regdesk.core.errors import ErrorContext, InvalidTransitionError

WAITLIST_TRANSITIONS: frozenset[tuple[WaitlistStatus, WaitlistStatus]] = frozenset({
    (WaitlistStatus.QUEUED, WaitlistStatus.OFFERED),
    (WaitlistStatus.QUEUED, WaitlistStatus.DECLINED),
    (WaitlistStatus.OFFERED, WaitlistStatus.ACCEPTED),
    (WaitlistStatus.OFFERED, WaitlistStatus.DECLINED),
    (WaitlistStatus.OFFERED, WaitlistStatus.EXPIRED),
})

ACTIVE_STATUSES: frozenset[WaitlistStatus] = frozenset({
    WaitlistStatus.QUEUED,
    WaitlistStatus.OFFERED,
})


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_waitlist_transition(
    current: WaitlistStatus,
    target: WaitlistStatus,
    context: ErrorContext | None = None,
) -> None:
    if (current, target) not in WAITLIST_TRANSITIONS:
        raise InvalidTransitionError(
            "WaitlistEntry", current.value, target.value, context,
        )


def offer_deadline(now: datetime, hours_valid: int) -> datetime:
    return as_utc(now) + timedelta(hours=hours_valid)


def is_offer_expired(offered_until: datetime | None, now: datetime) -> bool:
    """True once the expiry instant is reached. No expiry means not expired."""
    if offered_until is None:
        return False
    return as_utc(now) >= as_utc(offered_until)


def can_accept(
    status: WaitlistStatus, offered_until: datetime | None, now: datetime,
) -> bool:
    return (
        status == WaitlistStatus.OFFERED
        and offered_until is not None
        and not is_offer_expired(offered_until, now)
    )
