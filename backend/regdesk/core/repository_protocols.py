"""Boundary Protocols — contracts between core and the outside collaborators.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Collaborator failures are the caller's to log; none of these may roll
      back fulfillment
    - Implementations are provided by infrastructure/ and injected into services

Design Decisions:
    - Protocol over ABC: structural subtyping, tests pass plain fakes
    - Async in Protocol: every implementation does network IO
"""

from typing import Any, Protocol
from uuid import UUID


class PaymentGateway(Protocol):
    """Resolves abbreviated (thin) provider payloads to their full form."""
    async def resolve_full(
        self, event_type: str, partial: dict[str, Any],
    ) -> dict[str, Any]: ...


class ReceiptRenderer(Protocol):
    """Turns a resolved ticket & receipt model into a document.

    Returns an opaque document reference (URL, storage key) or None.
    """
    async def render(self, receipt: dict[str, Any]) -> str | None: ...


class NotificationSender(Protocol):
    """Sends a templated transactional message."""
    async def send_transactional(
        self,
        *,
        tenant_id: UUID,
        template: str,
        recipient_email: str,
        recipient_name: str | None,
        variables: dict[str, str],
        language: str = "en",
    ) -> None: ...
