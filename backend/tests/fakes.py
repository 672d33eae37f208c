"""Test doubles for the outbound collaborators and the clock.

Invariants:
    - Each fake records every call for assertions
    - `fail = True` makes the next calls raise, to exercise the
      "logged, never rolled back" paths
"""

from datetime import datetime, timedelta
from typing import Any


class FakeClock:
    """Callable clock pinned to a settable instant."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeNotifier:
    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    async def send_transactional(self, **kwargs) -> None:
        if self.fail:
            raise RuntimeError("notification service down")
        self.sent.append(kwargs)

    def templates(self) -> list[str]:
        return [m["template"] for m in self.sent]


class FakeRenderer:
    def __init__(self):
        self.receipts: list[dict[str, Any]] = []
        self.fail = False

    async def render(self, receipt: dict[str, Any]) -> str | None:
        if self.fail:
            raise RuntimeError("renderer unavailable")
        self.receipts.append(receipt)
        return f"doc://{receipt['transaction']['order_number']}"


class FakeGateway:
    """resolve_full backed by a dict of full objects keyed by object id."""

    def __init__(self, objects: dict[str, dict[str, Any]] | None = None):
        self.objects = dict(objects or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def resolve_full(
        self, event_type: str, partial: dict[str, Any],
    ) -> dict[str, Any]:
        self.calls.append((event_type, partial))
        return self.objects[partial["id"]]
