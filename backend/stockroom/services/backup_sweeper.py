"""Stale Backup Sweeper — resolves entries left IN_PROGRESS by crashed or cancelled work.

Invariants:
    - Only entries created more than `max_age` ago are failed
    - The periodic loop survives individual sweep errors and stops only on cancel
"""

import asyncio
import logging
from datetime import timedelta
from uuid import UUID

from stockroom.core.errors import StockroomError
from stockroom.core.repository_protocols import Clock
from stockroom.services.backup_catalog import BackupCatalog

logger = logging.getLogger(__name__)


async def sweep_stale_backups(
    catalog: BackupCatalog, clock: Clock, max_age: timedelta,
) -> list[UUID]:
    swept = await catalog.sweep_stale(clock.now() - max_age)
    if swept:
        logger.warning(f"Marked {len(swept)} stale backup(s) as FAILED")
    return swept


async def run_periodic_sweep(
    catalog: BackupCatalog, clock: Clock, max_age: timedelta, interval_seconds: float,
) -> None:
    """Sweep forever; meant to run as a background task cancelled on shutdown."""
    while True:
        try:
            await sweep_stale_backups(catalog, clock, max_age)
        except StockroomError as e:
            logger.error(f"Stale sweep failed: {e.message}", extra={"error_code": e.code})
        await asyncio.sleep(interval_seconds)
