"""Restore Planning — pure classification of artifact records against the live set.

Invariants:
    - plan_restore() performs no IO; the same inputs always give the same plan
    - REPLACE: every live id absent from the artifact is planned for DELETE; every
      artifact record is INSERT (absent) or OVERWRITE (present), timestamps ignored
    - MERGE: never plans a DELETE; OVERWRITE only when the artifact's updated_at is
      strictly newer than the live copy; ties and older copies are SKIP
    - Deletes are ordered before upserts; upserts keep artifact order
    - A repeated id inside one artifact is planned once; later copies are SKIP

Design Decisions:
    - Dry-run modes execute nothing but share this plan, so a preview and the
      real restore classify identically
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from stockroom.core.domain_types import RestorePolicy
from stockroom.core.inventory_record import InventoryRecord


class ActionKind(str, Enum):
    INSERT = "insert"
    OVERWRITE = "overwrite"
    SKIP = "skip"
    DELETE = "delete"


@dataclass(frozen=True)
class PlannedAction:
    kind: ActionKind
    record_id: UUID
    record: InventoryRecord | None = None
    reason: str | None = None


@dataclass
class RestorePlan:
    policy: RestorePolicy
    actions: list[PlannedAction] = field(default_factory=list)

    def of_kind(self, kind: ActionKind) -> list[PlannedAction]:
        return [a for a in self.actions if a.kind == kind]

    def count(self, kind: ActionKind) -> int:
        return sum(1 for a in self.actions if a.kind == kind)


def plan_restore(
    artifact_records: list[InventoryRecord],
    live_records: list[InventoryRecord],
    policy: RestorePolicy,
) -> RestorePlan:
    """Classify every artifact (and, for REPLACE, live) record. Pure, no IO."""
    live_by_id = {r.id: r for r in live_records}
    plan = RestorePlan(policy=policy)

    artifact_ids = {r.id for r in artifact_records}
    if policy is RestorePolicy.REPLACE:
        for live in live_records:
            if live.id not in artifact_ids:
                plan.actions.append(PlannedAction(ActionKind.DELETE, live.id))

    seen: set[UUID] = set()
    for record in artifact_records:
        if record.id in seen:
            plan.actions.append(PlannedAction(
                ActionKind.SKIP, record.id, record, "duplicate id in artifact",
            ))
            continue
        seen.add(record.id)
        plan.actions.append(_classify(record, live_by_id.get(record.id), policy))
    return plan


def _classify(
    record: InventoryRecord, live: InventoryRecord | None, policy: RestorePolicy,
) -> PlannedAction:
    if live is None:
        return PlannedAction(ActionKind.INSERT, record.id, record)
    if policy is RestorePolicy.REPLACE:
        return PlannedAction(ActionKind.OVERWRITE, record.id, record)
    if record.updated_at > live.updated_at:
        return PlannedAction(ActionKind.OVERWRITE, record.id, record)
    return PlannedAction(
        ActionKind.SKIP, record.id, record, "live copy is as new or newer",
    )
