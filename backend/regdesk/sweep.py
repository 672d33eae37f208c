"""Waitlist Sweep — one-shot expiry + promotion pass for an external scheduler.

Usage: python -m regdesk.sweep [--item ITEM_ID]

Invariants:
    - Same transition as lazy expiry (WaitlistManager.sweep_expired), so cron
      and request traffic can overlap safely
    - Exit code 0 even when nothing expired
"""

import argparse
import asyncio
import logging
from uuid import UUID

from regdesk.config import get_settings
from regdesk.infrastructure.collaborators import build_notifier
from regdesk.infrastructure.database import DatabaseSessionManager
from regdesk.infrastructure.observability import setup_logging
from regdesk.services.waitlist import SweepResult, WaitlistManager

logger = logging.getLogger(__name__)


async def run_sweep(item_id: UUID | None = None) -> SweepResult:
    settings = get_settings()
    manager = DatabaseSessionManager(settings.database_url, pool_size=1, max_overflow=0)
    try:
        async with manager.session() as db:
            waitlist = WaitlistManager(
                db, build_notifier(settings), settings.waitlist_offer_hours,
            )
            return await waitlist.sweep_expired(item_id)
    finally:
        await manager.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Expire waitlist offers and promote queues")
    parser.add_argument("--item", type=UUID, default=None, help="limit to one item id")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    result = asyncio.run(run_sweep(args.item))
    logger.info(f"Sweep finished: {result.expired} expired, {result.offered} offered")


if __name__ == "__main__":
    main()
