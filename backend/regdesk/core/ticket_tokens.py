"""Ticket Tokens & Numbering — opaque QR tokens and deterministic ticket plans.

Invariants:
    - QR tokens are 256-bit random, URL-safe, and carry no holder data
    - Ticket plans are a pure function of the order's registrations: the same
      input always yields the same (registration, sequence) pairs
    - Event registrations get one ticket per purchased unit; course
      registrations get one ticket per (holder, item)
    - Sequences start at 1 and are contiguous across the whole order

Design Decisions:
    - Registrations ordered by (created_at, id) before numbering: retries after a
      crash re-derive identical numbers, so unique (registration, sequence)
      constraints turn repeats into no-ops instead of duplicates or gaps
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence
from uuid import UUID

from regdesk.core.domain_types import OrderKind

QR_TOKEN_BYTES = 32


def generate_qr_token() -> str:
    return secrets.token_urlsafe(QR_TOKEN_BYTES)


@dataclass(frozen=True)
class RegistrationView:
    """What the planner needs to know about a registration."""
    id: UUID
    holder_id: UUID
    item_id: UUID
    quantity: int
    created_at: datetime


@dataclass(frozen=True)
class PlannedTicket:
    registration_id: UUID
    holder_id: UUID
    item_id: UUID
    sequence: int


def _ordered(registrations: Sequence[RegistrationView]) -> list[RegistrationView]:
    return sorted(registrations, key=lambda r: (r.created_at, str(r.id)))


def plan_tickets(
    kind: OrderKind, registrations: Sequence[RegistrationView],
) -> list[PlannedTicket]:
    """Every ticket an order should own once fulfilled, in issuance order."""
    plan: list[PlannedTicket] = []
    sequence = 0
    for reg in _ordered(registrations):
        units = reg.quantity if kind == OrderKind.EVENT else 1
        for _ in range(units):
            sequence += 1
            plan.append(PlannedTicket(
                registration_id=reg.id,
                holder_id=reg.holder_id,
                item_id=reg.item_id,
                sequence=sequence,
            ))
    return plan
