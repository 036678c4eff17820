"""Domain Types — closed enums for the backup domain.

Invariants:
    - Formats, statuses, restore modes and destinations are closed enums;
      loosely-typed option strings are converted at the API boundary
    - BackupStatus transitions are defined only by ALLOWED_TRANSITIONS

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
    - RestoreMode.PREVIEW_FULL: "preview of a full replace" is its own value,
      so dry-run + policy cannot be combined inconsistently
"""

from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class BackupFormat(str, Enum):
    """Artifact on-disk representation."""
    JSON = "JSON"
    CSV = "CSV"
    SQL = "SQL"

    @property
    def extension(self) -> str:
        return self.value.lower()


class BackupStatus(str, Enum):
    """Catalog lifecycle states — maps to DB `status` column."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (BackupStatus.COMPLETED, BackupStatus.FAILED)


ALLOWED_TRANSITIONS: dict[BackupStatus, frozenset[BackupStatus]] = {
    BackupStatus.PENDING: frozenset({BackupStatus.IN_PROGRESS, BackupStatus.FAILED}),
    BackupStatus.IN_PROGRESS: frozenset({BackupStatus.COMPLETED, BackupStatus.FAILED}),
    BackupStatus.COMPLETED: frozenset(),
    BackupStatus.FAILED: frozenset(),
}


def can_transition(current: BackupStatus, target: BackupStatus) -> bool:
    """True if the catalog state machine allows current -> target."""
    return target in ALLOWED_TRANSITIONS[current]


class RestorePolicy(str, Enum):
    """Conflict policy applied when reconciling artifact records with live ones."""
    REPLACE = "replace"
    MERGE = "merge"


class RestoreMode(str, Enum):
    """Restore modes exposed to callers.

    PREVIEW classifies like MERGE, PREVIEW_FULL classifies like FULL;
    neither issues writes.
    """
    FULL = "full"
    MERGE = "merge"
    PREVIEW = "preview"
    PREVIEW_FULL = "preview_full"

    @property
    def is_dry_run(self) -> bool:
        return self in (RestoreMode.PREVIEW, RestoreMode.PREVIEW_FULL)

    @property
    def policy(self) -> RestorePolicy:
        if self in (RestoreMode.FULL, RestoreMode.PREVIEW_FULL):
            return RestorePolicy.REPLACE
        return RestorePolicy.MERGE


class Destination(str, Enum):
    """Inventory destinations."""
    MAIS = "MAIS"
    FOZAN = "FOZAN"


class AlertLevel(str, Enum):
    """Health alert severity surfaced to dashboards."""
    WARNING = "warning"
    ERROR = "error"


class AuditAction(str, Enum):
    """Actions written to the audit sink by callers of the core."""
    EXPORT = "EXPORT"
    RESTORE = "RESTORE"
    VERIFY = "VERIFY"
