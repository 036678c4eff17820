"""Inventory Record — the value object carried between the live store and artifacts.

Invariants:
    - Frozen: a record is never mutated in place, updates produce a new record
    - Blank category/notes normalize to None (so every format round-trips them)
    - to_dict() emits the stable camelCase artifact field names
    - from_dict() checks presence and types only (SchemaMismatchError);
      business constraints (reject <= quantity) are checked by
      constraint_violations() at the store boundary, not while decoding

Design Decisions:
    - Timestamps are timezone-aware; naive input is interpreted as UTC
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from stockroom.core.domain_types import Destination
from stockroom.core.errors import SchemaMismatchError

# Stable artifact column order, shared by the CSV and SQL formats
RECORD_FIELDS: tuple[str, ...] = (
    "id", "itemName", "batch", "quantity", "reject", "destination",
    "category", "notes", "enteredBy", "createdAt", "updatedAt",
)


@dataclass(frozen=True)
class InventoryRecord:
    id: UUID
    item_name: str
    batch: str
    quantity: int
    reject: int
    destination: Destination
    entered_by: UUID
    created_at: datetime
    updated_at: datetime
    category: str | None = None
    notes: str | None = None

    def __post_init__(self):
        for name in ("category", "notes"):
            value = getattr(self, name)
            if value is not None and not value.strip():
                object.__setattr__(self, name, None)

    def constraint_violations(self) -> list[str]:
        """Business-rule violations; empty list means the record is storable."""
        problems = []
        if self.quantity < 0:
            problems.append("quantity must be non-negative")
        if self.reject < 0:
            problems.append("reject must be non-negative")
        if self.reject > self.quantity:
            problems.append(
                f"reject ({self.reject}) exceeds quantity ({self.quantity})",
            )
        if not self.item_name.strip():
            problems.append("item name must not be empty")
        return problems

    def touched(self, at: datetime, **changes: Any) -> "InventoryRecord":
        """Copy with changes applied and updated_at moved to `at`."""
        return replace(self, updated_at=at, **changes)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "itemName": self.item_name,
            "batch": self.batch,
            "quantity": self.quantity,
            "reject": self.reject,
            "destination": self.destination.value,
            "category": self.category,
            "notes": self.notes,
            "enteredBy": str(self.entered_by),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "InventoryRecord":
        """Build from an artifact mapping. Raises SchemaMismatchError."""
        if not isinstance(data, dict):
            raise SchemaMismatchError("inventory[]", "must be an object")
        return cls(
            id=parse_uuid(data, "id"),
            item_name=_require_str(data, "itemName"),
            batch=_require_str(data, "batch"),
            quantity=_require_int(data, "quantity"),
            reject=_require_int(data, "reject"),
            destination=_parse_destination(data),
            category=_optional_str(data, "category"),
            notes=_optional_str(data, "notes"),
            entered_by=parse_uuid(data, "enteredBy"),
            created_at=parse_timestamp(data, "createdAt"),
            updated_at=parse_timestamp(data, "updatedAt"),
        )


# ─── Field parsers (shared with the codec) ──────────────────────

def _require(data: dict, key: str) -> Any:
    if key not in data or data[key] is None:
        raise SchemaMismatchError(key, "is required")
    return data[key]


def _require_str(data: dict, key: str) -> str:
    value = _require(data, key)
    if not isinstance(value, str):
        raise SchemaMismatchError(key, f"must be a string, got {type(value).__name__}")
    return value


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaMismatchError(key, f"must be a string, got {type(value).__name__}")
    return value


def _require_int(data: dict, key: str) -> int:
    value = _require(data, key)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaMismatchError(key, f"must be an integer, got {type(value).__name__}")
    return value


def _parse_destination(data: dict) -> Destination:
    value = _require_str(data, "destination")
    try:
        return Destination(value)
    except ValueError:
        raise SchemaMismatchError(
            "destination", f"must be one of {[d.value for d in Destination]}",
        )


def parse_uuid(data: dict, key: str) -> UUID:
    value = _require_str(data, key)
    try:
        return UUID(value)
    except ValueError:
        raise SchemaMismatchError(key, "must be a UUID")


def parse_timestamp(data: dict, key: str) -> datetime:
    value = _require_str(data, key)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise SchemaMismatchError(key, "must be an ISO-8601 timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
