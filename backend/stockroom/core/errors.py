"""Error Hierarchy — typed, categorized exceptions for every backup failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Precondition errors (400/404/409-level) abort an operation before any write
    - Per-record and per-format problems are NOT exceptions: they travel inside
      RestoreOutcome.errors and BackupCreation.warnings
    - to_response() never leaks internal details

Design Decisions:
    - Single hierarchy with StockroomError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    STORAGE = "storage"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    INTEGRITY = "integrity"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    backup_id: str | None = None
    record_id: str | None = None
    requester_id: str | None = None
    debug_info: dict[str, Any] | None = None


class StockroomError(Exception):
    """Base exception for all Stockroom errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "backup_id": self.context.backup_id,
                    "record_id": self.context.record_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(StockroomError):
    """Requested backup or record does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidTransitionError(StockroomError):
    """Catalog state machine violation (e.g. completing a FAILED backup)."""
    def __init__(
        self, backup_id: str, current: str, target: str,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.backup_id = backup_id
        super().__init__(
            f"Backup '{backup_id}' cannot move from {current} to {target}",
            "INVALID_TRANSITION", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, ctx, 409,
        )
        self.current = current
        self.target = target


class BackupOptionsError(StockroomError):
    """Caller-supplied backup or restore options fail structural checks."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class MalformedArtifactError(StockroomError):
    """Artifact bytes do not parse as the declared format."""
    def __init__(self, fmt: str, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Artifact is not valid {fmt}: {detail}",
            "MALFORMED_ARTIFACT", ErrorCategory.INTEGRITY,
            ErrorSeverity.ERROR, context, 422,
        )
        self.format = fmt
        self.detail = detail


class SchemaMismatchError(StockroomError):
    """Artifact parsed, but a required field is missing or has the wrong type."""
    def __init__(self, field: str, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Artifact field '{field}' {detail}",
            "SCHEMA_MISMATCH", ErrorCategory.INTEGRITY,
            ErrorSeverity.ERROR, context, 422,
        )
        self.field = field
        self.detail = detail


class CorruptBackupError(StockroomError):
    """Verification failed — restore refuses to read the artifact."""
    def __init__(self, backup_id: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.backup_id = backup_id
        super().__init__(
            f"Backup '{backup_id}' failed verification: {reason}",
            "CORRUPT_BACKUP", ErrorCategory.INTEGRITY,
            ErrorSeverity.ERROR, ctx, 422,
        )
        self.reason = reason


class RecordConstraintError(StockroomError):
    """An inventory record violates a store-level constraint (e.g. reject > quantity)."""
    def __init__(self, record_id: str, message: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.record_id = record_id
        super().__init__(
            f"Record '{record_id}' rejected: {message}",
            "RECORD_CONSTRAINT", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, ctx, 400,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(StockroomError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class StorageError(StockroomError):
    """Artifact storage read/write failed."""
    def __init__(self, message: str, path: str, context: ErrorContext | None = None):
        super().__init__(
            f"Storage error on '{path}': {message}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.path = path


class BackupFailedError(StockroomError):
    """Every requested format failed; the catalog entry has been marked FAILED."""
    def __init__(self, backup_id: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.backup_id = backup_id
        super().__init__(
            f"Backup '{backup_id}' failed: {reason}",
            "BACKUP_FAILED", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, ctx, 500,
        )
        self.backup_id = backup_id
        self.reason = reason
