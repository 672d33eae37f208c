"""regdesk API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map RegDeskError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from regdesk.api.error_handlers import register_error_handlers
from regdesk.api.routes import health, orders, payments, registrations, tickets, waitlist
from regdesk.config import get_settings
from regdesk.infrastructure import database as db_module
from regdesk.infrastructure.database import init_db
from regdesk.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("regdesk API started")
    yield
    if db_module.db_manager:
        await db_module.db_manager.dispose()
    logger.info("regdesk API shutting down")


app = FastAPI(title="regdesk API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(payments.router)
app.include_router(orders.router)
app.include_router(registrations.router)
app.include_router(waitlist.router)
app.include_router(tickets.router)

register_error_handlers(app)
