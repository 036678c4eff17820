"""Restore Engine — verify, decode, plan, and apply a backup to the live set.

Invariants:
    - Nothing is written unless verification passes (CorruptBackupError otherwise)
    - FULL/MERGE runs of one backup id are serialized (KeyedLocks); preview modes
      take no lock and never write
    - Per-record failures land in outcome.errors and are counted as neither added
      nor updated; earlier successful writes are not rolled back
    - The engine never touches the catalog entry of the backup it restores

Design Decisions:
    - Classification is the pure plan_restore(); previews report the same plan a
      real run would execute
    - added/updated count what the store actually did (an INSERT that found a
      concurrently created row counts as updated)
"""

import logging
from uuid import UUID

from stockroom.core.domain_types import RestoreMode
from stockroom.core.errors import StockroomError
from stockroom.core.repository_protocols import Clock, InventoryStore
from stockroom.core.restore_outcome import RestoreOutcome
from stockroom.core.restore_plan import ActionKind, RestorePlan, plan_restore
from stockroom.services.backup_verifier import BackupVerifier
from stockroom.services.keyed_locks import KeyedLocks

logger = logging.getLogger(__name__)


class RestoreEngine:

    def __init__(self, verifier: BackupVerifier, store: InventoryStore, clock: Clock):
        self._verifier = verifier
        self._store = store
        self._clock = clock
        self._locks = KeyedLocks()

    async def restore(
        self, backup_id: UUID, mode: RestoreMode, requester_id: UUID,
    ) -> RestoreOutcome:
        if mode.is_dry_run:
            return await self._run(backup_id, mode, requester_id)
        async with self._locks.hold(backup_id):
            return await self._run(backup_id, mode, requester_id)

    def is_restoring(self, backup_id: UUID) -> bool:
        return self._locks.is_held(backup_id)

    async def _run(
        self, backup_id: UUID, mode: RestoreMode, requester_id: UUID,
    ) -> RestoreOutcome:
        log_extra = {
            "backup_id": str(backup_id),
            "mode": mode.value,
            "requester_id": str(requester_id),
        }
        outcome = RestoreOutcome(backup_id=backup_id, mode=mode, started_at=self._clock.now())

        _, contents = await self._verifier.load_verified(backup_id)
        live = await self._store.read_inventory_snapshot()
        plan = plan_restore(contents.records, live, mode.policy)
        logger.info(
            f"Restore planned: {len(plan.actions)} action(s) over {len(live)} live record(s)",
            extra=log_extra,
        )

        if mode.is_dry_run:
            _project(plan, outcome)
        else:
            await self._apply(plan, outcome)

        outcome.finished_at = self._clock.now()
        log = logger.info if outcome.success else logger.warning
        log(
            f"Restore finished: added={outcome.added} updated={outcome.updated} "
            f"skipped={outcome.skipped} deleted={outcome.deleted} errors={len(outcome.errors)}",
            extra={**log_extra, "duration_ms": outcome.duration_ms},
        )
        return outcome

    async def _apply(self, plan: RestorePlan, outcome: RestoreOutcome) -> None:
        for action in plan.actions:
            if action.kind is ActionKind.SKIP:
                outcome.skipped += 1
                continue
            try:
                if action.kind is ActionKind.DELETE:
                    if await self._store.delete_inventory_record(action.record_id):
                        outcome.deleted += 1
                elif await self._store.upsert_inventory_record(action.record):
                    outcome.added += 1
                else:
                    outcome.updated += 1
            except StockroomError as e:
                logger.warning(
                    f"Restore write failed: {e.message}",
                    extra={"record_id": str(action.record_id), "error_code": e.code},
                )
                outcome.errors.append(f"{action.record_id}: {e.message}")


def _project(plan: RestorePlan, outcome: RestoreOutcome) -> None:
    outcome.added = plan.count(ActionKind.INSERT)
    outcome.updated = plan.count(ActionKind.OVERWRITE)
    outcome.skipped = plan.count(ActionKind.SKIP)
    outcome.deleted = plan.count(ActionKind.DELETE)
    outcome.planned = [
        {
            "action": action.kind.value,
            "id": str(action.record_id),
            "reason": action.reason,
        }
        for action in plan.actions
    ]
