"""Stockroom API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map StockroomError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, BackupService and the stale-backup sweeper are created in the
      lifespan and torn down with it

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Services live in app.state; routes read them through Depends so tests can
      override them
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockroom.api.error_handlers import register_error_handlers
from stockroom.api.routes import backups, health
from stockroom.config import get_settings
from stockroom.infrastructure.database import init_db
from stockroom.infrastructure.observability import setup_logging
from stockroom.infrastructure.sql_audit_sink import SqlAuditSink
from stockroom.services.backup_service import BackupService
from stockroom.services.backup_sweeper import run_periodic_sweep

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    service = BackupService.from_settings(settings, manager.session)
    app.state.backup_service = service
    app.state.audit_sink = SqlAuditSink(manager.session)

    sweeper = asyncio.create_task(run_periodic_sweep(
        service.catalog, service.clock,
        timedelta(minutes=settings.stale_backup_minutes),
        settings.backup_sweep_interval_seconds,
    ))
    logger.info("Stockroom API started")
    yield
    logger.info("Stockroom API shutting down")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await manager.dispose()


app = FastAPI(
    title="Stockroom API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(backups.router)

register_error_handlers(app)
