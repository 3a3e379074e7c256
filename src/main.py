"""FastAPI application entry point: wires everything together.

Usage:
    python -m src.main

Serves the switch trigger, the Skribble webhook and a health check.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.admin.alerts import alert_engine
from src.admin.events import clear_subscribers, emit, start_event_system, stop_event_system, subscribe
from src.channels.skribble_webhook import skribble_router
from src.channels.switch import get_workflow, switch_router
from src.config import settings
from src.db.engine import db_lifespan
from src.errors import ConfigError
from src.schemas.events import EventType, SystemEvent
from src.security.audit import audit_on_event

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup validates provider config, then opens DB and event bus."""
    logger.info("Starting KVG switch service (env=%s)", settings.environment)

    # 1. Provider configuration, checked once before serving
    try:
        get_workflow()
        logger.info("Skribble workflow configured (%s)", settings.skribble.skribble_environment)
    except ConfigError as exc:
        if settings.is_production:
            raise
        logger.warning("%s; switch endpoints will answer CONFIG_ERROR", exc.message)

    # 2. Database
    async with db_lifespan():
        # 3. Event system with audit trail and operator alerts
        subscribe(audit_on_event)
        subscribe(alert_engine.on_event, event_types=alert_engine.watched_types)
        await start_event_system()
        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"environment": settings.environment},
            source_module="main",
        ))

        try:
            yield
        finally:
            logger.info("Shutting down KVG switch service...")
            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            clear_subscribers()

    logger.info("KVG switch service shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="KVG Switch API",
    description=f"Insurance switch documents and qualified signatures for {settings.branding.company_name}",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(switch_router)
app.include_router(skribble_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "environment": settings.environment,
        "signing_environment": settings.skribble.skribble_environment,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
