"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database is unreachable or the backup
      directory cannot be written (readiness); `reason` names the first failure
"""

import asyncio
import logging
import os
from pathlib import Path

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from stockroom.config import Settings, get_settings
from stockroom.infrastructure import database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Liveness probe. Returns 200 if the process is up."""
    return {"status": "healthy", "service": "stockroom-api", "version": "1.0.0"}


@router.get("/ready")
async def readiness_check(settings: Settings = Depends(get_settings)):
    """Readiness probe — database connectivity and a writable backup directory."""
    manager = database.db_manager
    checks = {
        "database": await manager.health_check() if manager else False,
        "backup_storage": await asyncio.to_thread(_storage_writable, settings.backup_dir),
    }
    failed = [name for name, ok in checks.items() if not ok]
    if failed:
        logger.warning(f"Not ready: {', '.join(failed)} unavailable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": f"{failed[0]}_unavailable"},
        )
    return {"status": "ready", "checks": {name: "healthy" for name in checks}}


def _storage_writable(backup_dir: str) -> bool:
    # The directory is created on first write, so check its nearest existing ancestor
    path = Path(backup_dir).resolve()
    while not path.exists():
        path = path.parent
    return path.is_dir() and os.access(path, os.W_OK)
