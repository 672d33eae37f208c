"""Outbound Collaborators — document rendering and transactional notifications.

Invariants:
    - HTTP implementations raise on transport errors and non-2xx answers; the
      services that call them log and continue
    - Logging fallbacks are used when no service URL is configured
    - Nothing here reads or writes the database

Design Decisions:
    - httpx.AsyncClient per call: low volume (one render + one notification per
      fulfilled order), no pool lifecycle to manage
"""

import logging
from typing import Any
from uuid import UUID

import httpx

from regdesk.config import Settings

logger = logging.getLogger(__name__)


class HttpReceiptRenderer:
    """Posts the resolved ticket & receipt model to a rendering service."""

    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def render(self, receipt: dict[str, Any]) -> str | None:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/receipts", json=receipt)
            response.raise_for_status()
        body = response.json() if response.content else {}
        return body.get("document_url") or body.get("id")


class HttpNotificationSender:
    """Posts templated transactional messages to a notification service."""

    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def send_transactional(
        self,
        *,
        tenant_id: UUID,
        template: str,
        recipient_email: str,
        recipient_name: str | None,
        variables: dict[str, str],
        language: str = "en",
    ) -> None:
        payload = {
            "tenant_id": str(tenant_id),
            "template": template,
            "recipient": {"email": recipient_email, "name": recipient_name},
            "variables": variables,
            "language": language,
        }
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}/messages/transactional", json=payload,
            )
            response.raise_for_status()


class LoggingReceiptRenderer:
    """Fallback renderer: records that a receipt would have been rendered."""

    async def render(self, receipt: dict[str, Any]) -> str | None:
        order_number = receipt.get("transaction", {}).get("order_number")
        logger.info(f"Receipt rendering not configured; skipped {order_number}")
        return None


class LoggingNotificationSender:
    """Fallback sender: logs the template instead of delivering it."""

    async def send_transactional(
        self,
        *,
        tenant_id: UUID,
        template: str,
        recipient_email: str,
        recipient_name: str | None,
        variables: dict[str, str],
        language: str = "en",
    ) -> None:
        logger.info(
            f"Notification '{template}' not delivered (no service configured)",
            extra={"tenant_id": tenant_id},
        )


def build_renderer(settings: Settings):
    if settings.renderer_url:
        return HttpReceiptRenderer(
            settings.renderer_url, settings.collaborator_timeout_seconds,
        )
    return LoggingReceiptRenderer()


def build_notifier(settings: Settings):
    if settings.notifications_url:
        return HttpNotificationSender(
            settings.notifications_url, settings.collaborator_timeout_seconds,
        )
    return LoggingNotificationSender()
