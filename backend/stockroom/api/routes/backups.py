"""Backup Routes — create, list, inspect, verify, restore and monitor backups.

Invariants:
    - Every mutating request names its actor via the X-User-Id header
    - Domain errors propagate to the global StockroomError handler (no try/except
      around service calls here)
    - Audit entries are written after the operation; an audit failure never undoes
      the operation and is reported back as audit_recorded=false
    - Dry-run restores are not audited (audit_recorded is null)

Design Decisions:
    - BackupService and AuditSink come from app.state via Depends, so tests swap
      them through app.dependency_overrides
    - /health and /maintenance/* are declared before /{backup_id}
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, status

from stockroom.core.domain_types import AuditAction
from stockroom.core.errors import StockroomError
from stockroom.core.repository_protocols import AuditSink
from stockroom.schemas.backup import BackupCreateRequest, RestoreRequest
from stockroom.services.backup_service import BackupService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/backups", tags=["backups"])


def get_backup_service(request: Request) -> BackupService:
    return request.app.state.backup_service


def get_audit_sink(request: Request) -> AuditSink:
    return request.app.state.audit_sink


async def get_requester_id(x_user_id: UUID = Header(...)) -> UUID:
    return x_user_id


async def _audit(
    sink: AuditSink,
    actor_id: UUID,
    action: AuditAction,
    entity_id: str,
    new_value: dict[str, Any],
) -> bool:
    """Record an audit entry; returns False (and logs) when the sink fails."""
    try:
        await sink.record_action(
            actor_id, action, "backup", entity_id=entity_id, new_value=new_value,
        )
    except StockroomError as e:
        logger.error(
            f"Audit write failed: {e.message}",
            extra={"backup_id": entity_id, "error_code": e.code},
        )
        return False
    return True


@router.get("")
async def list_backups(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: BackupService = Depends(get_backup_service),
):
    """Paginated catalog listing."""
    result = await service.list_backups(page, limit, sort_by, sort_order)
    return result.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_backup(
    body: BackupCreateRequest,
    requester_id: UUID = Depends(get_requester_id),
    service: BackupService = Depends(get_backup_service),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Create a backup in every requested format."""
    creation = await service.create_backup(requester_id, body.to_options())
    entry = creation.entry
    recorded = await _audit(audit, requester_id, AuditAction.EXPORT, str(entry.id), {
        "action": "create_backup",
        "backupId": str(entry.id),
        "fileName": entry.file_name,
        "formats": [a.format.value for a in entry.artifacts],
        "recordCount": entry.record_count,
        "fileSize": entry.file_size,
        "warnings": list(creation.warnings),
    })
    return {**creation.to_dict(), "audit_recorded": recorded}


@router.get("/health")
async def backup_health(service: BackupService = Depends(get_backup_service)):
    """Streak, failures, storage usage and alerts, computed fresh."""
    health = await service.get_backup_health()
    return health.to_dict()


@router.post("/maintenance/sweep")
async def sweep_stale(service: BackupService = Depends(get_backup_service)):
    """Fail entries stuck IN_PROGRESS past the configured threshold."""
    swept = await service.sweep_stale_backups()
    return {"failed": [str(i) for i in swept]}


@router.post("/maintenance/retention")
async def apply_retention(service: BackupService = Depends(get_backup_service)):
    report = await service.apply_retention()
    return report.to_dict()


@router.get("/{backup_id}")
async def get_backup(
    backup_id: UUID, service: BackupService = Depends(get_backup_service),
):
    entry = await service.get_backup(backup_id)
    return entry.to_dict()


@router.post("/{backup_id}/verify")
async def verify_backup(
    backup_id: UUID,
    requester_id: UUID = Depends(get_requester_id),
    service: BackupService = Depends(get_backup_service),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Recompute checksums and decode artifacts; a failed check is a 200 with valid=false."""
    result = await service.verify_backup(backup_id)
    recorded = await _audit(audit, requester_id, AuditAction.VERIFY, str(backup_id), {
        "action": "verify_backup",
        "backupId": str(backup_id),
        "valid": result.valid,
        "reason": result.reason,
    })
    return {**result.to_dict(), "audit_recorded": recorded}


@router.post("/{backup_id}/restore")
async def restore_backup(
    backup_id: UUID,
    body: RestoreRequest,
    requester_id: UUID = Depends(get_requester_id),
    service: BackupService = Depends(get_backup_service),
    audit: AuditSink = Depends(get_audit_sink),
):
    """Restore into the live inventory (or preview what a restore would do)."""
    outcome = await service.restore_backup(
        backup_id, body.restore_mode, requester_id,
        create_backup_before_restore=body.create_backup_before_restore,
    )
    recorded = None
    if not outcome.dry_run:
        recorded = await _audit(
            audit, requester_id, AuditAction.RESTORE, str(backup_id),
            outcome.to_audit_value(),
        )
    return {**outcome.to_dict(), "audit_recorded": recorded}
