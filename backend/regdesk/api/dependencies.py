"""Dependency Wiring — builds services per request on top of get_db.

Invariants:
    - One AsyncSession per request, shared by every service built for it
      (FastAPI caches dependencies within a request)
    - Collaborators (gateway, renderer, notifier) are process-wide and cached
    - Tests override the collaborator getters via app.dependency_overrides

Design Decisions:
    - Plain functions over a DI container: wiring stays greppable
"""

from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from regdesk.config import get_settings
from regdesk.core.repository_protocols import (
    NotificationSender, PaymentGateway, ReceiptRenderer,
)
from regdesk.infrastructure.collaborators import build_notifier, build_renderer
from regdesk.infrastructure.database import get_db
from regdesk.infrastructure.stripe_gateway import StripeGateway
from regdesk.services import utc_now
from regdesk.services.fulfillment import FulfillmentService, platform_info
from regdesk.services.orders import OrderService
from regdesk.services.payment_event_guard import PaymentEventGuard
from regdesk.services.payment_event_handler import PaymentEventHandler
from regdesk.services.tickets import TicketIssuer
from regdesk.services.waitlist import WaitlistManager


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(
        settings.stripe_secret_key,
        max_retries=settings.stripe_max_retries,
        base_delay_ms=settings.stripe_base_delay_ms,
        max_delay_ms=settings.stripe_max_delay_ms,
    )


@lru_cache
def get_receipt_renderer() -> ReceiptRenderer:
    return build_renderer(get_settings())


@lru_cache
def get_notification_sender() -> NotificationSender:
    return build_notifier(get_settings())


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_waitlist_manager(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notification_sender),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> WaitlistManager:
    return WaitlistManager(
        db, notifier, get_settings().waitlist_offer_hours, clock,
    )


def get_order_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notification_sender),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> OrderService:
    return OrderService(db, notifier, waitlist, clock)


def get_fulfillment_service(
    db: AsyncSession = Depends(get_db),
    renderer: ReceiptRenderer = Depends(get_receipt_renderer),
    notifier: NotificationSender = Depends(get_notification_sender),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> FulfillmentService:
    return FulfillmentService(
        db, renderer, notifier, platform_info(get_settings()), clock,
    )


def get_ticket_issuer(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> TicketIssuer:
    return TicketIssuer(db, clock)


def get_payment_event_guard(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PaymentEventGuard:
    return PaymentEventGuard(db, clock)


def get_payment_event_handler(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
    orders: OrderService = Depends(get_order_service),
) -> PaymentEventHandler:
    return PaymentEventHandler(gateway, fulfillment, orders)
