"""SQL Audit Sink — appends audit rows; used by the API layer after backup operations."""

import logging
from typing import Any
from uuid import UUID

from stockroom.core.domain_types import AuditAction
from stockroom.infrastructure.database import SessionProvider
from stockroom.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class SqlAuditSink:

    def __init__(self, sessions: SessionProvider):
        self._sessions = sessions

    async def record_action(
        self,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: str | None = None,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
    ) -> None:
        async with self._sessions() as db:
            db.add(AuditLog(
                user_id=actor_id,
                action=action.value,
                entity_type=entity_type,
                entity_id=entity_id,
                old_value=old_value,
                new_value=new_value,
            ))
            await db.commit()
        logger.info(
            f"Audit: {action.value} {entity_type}",
            extra={"requester_id": str(actor_id)},
        )
