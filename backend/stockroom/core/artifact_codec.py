"""Artifact Codec — renders a snapshot to JSON / CSV / SQL bytes and parses it back.

Invariants:
    - encode() is deterministic for a given snapshot + metadata
    - checksum() is SHA-256 over the exact bytes given (stored bytes, never plaintext)
    - decode() raises MalformedArtifactError when bytes do not parse as the format,
      SchemaMismatchError when fields are missing or mistyped
    - decode(encode(x)).records == x for any valid record list, in every format
    - JSON layout is {"metadata", "inventory", "auditLogs"?, "users"?, "systemSettings"?}
      and those names never change

Design Decisions:
    - CSV uses csv.QUOTE_MINIMAL with the default CRLF terminator: any field with a
      comma, quote, CR or LF is quoted and inner quotes doubled
    - CSV/SQL carry inventory only (metadata=None on decode); JSON carries everything
    - SQL is a hand-scanned INSERT dump ('' escaping), decodable so it can be verified
"""

import csv
import hashlib
import io
import json
import re
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from stockroom.core.domain_types import BackupFormat
from stockroom.core.errors import MalformedArtifactError, SchemaMismatchError
from stockroom.core.inventory_record import (
    RECORD_FIELDS, InventoryRecord, parse_timestamp, parse_uuid,
)

_INT_FIELDS = frozenset({"quantity", "reject"})
_OPTIONAL_FIELDS = frozenset({"category", "notes"})


@dataclass(frozen=True)
class ArtifactMetadata:
    """The metadata block written at the head of a JSON artifact."""
    backup_id: UUID
    created_at: datetime
    created_by: str
    record_count: int
    includes_audit: bool

    def to_dict(self) -> dict:
        return {
            "backupId": str(self.backup_id),
            "createdAt": self.created_at.isoformat(),
            "createdBy": self.created_by,
            "recordCount": self.record_count,
            "includesAudit": self.includes_audit,
        }

    @classmethod
    def from_dict(cls, data) -> "ArtifactMetadata":
        if not isinstance(data, dict):
            raise SchemaMismatchError("metadata", "must be an object")
        created_by = data.get("createdBy")
        if not isinstance(created_by, str):
            raise SchemaMismatchError("metadata.createdBy", "must be a string")
        count = data.get("recordCount")
        if isinstance(count, bool) or not isinstance(count, int):
            raise SchemaMismatchError("metadata.recordCount", "must be an integer")
        includes_audit = data.get("includesAudit")
        if not isinstance(includes_audit, bool):
            raise SchemaMismatchError("metadata.includesAudit", "must be a boolean")
        return cls(
            backup_id=parse_uuid(data, "backupId"),
            created_at=parse_timestamp(data, "createdAt"),
            created_by=created_by,
            record_count=count,
            includes_audit=includes_audit,
        )


@dataclass
class Snapshot:
    """Data read once from the live store for one backup."""
    records: list[InventoryRecord]
    audit_entries: list[dict] | None = None
    users: list[dict] | None = None
    system_settings: list[dict] | None = None


@dataclass
class ArtifactContents:
    """Result of decoding an artifact."""
    records: list[InventoryRecord]
    metadata: ArtifactMetadata | None = None
    audit_entries: list[dict] | None = None
    users: list[dict] | None = None
    system_settings: list[dict] | None = None


def checksum(data: bytes) -> str:
    """SHA-256 hex digest of the given bytes."""
    return hashlib.sha256(data).hexdigest()


def encode(snapshot: Snapshot, metadata: ArtifactMetadata, fmt: BackupFormat) -> bytes:
    """Render a snapshot in the requested format."""
    if fmt is BackupFormat.JSON:
        return _encode_json(snapshot, metadata)
    if fmt is BackupFormat.CSV:
        return _encode_csv(snapshot.records)
    if fmt is BackupFormat.SQL:
        return _encode_sql(snapshot.records, metadata)
    raise ValueError(f"Unsupported backup format: {fmt}")


def decode(data: bytes, fmt: BackupFormat) -> ArtifactContents:
    """Parse artifact bytes. Raises MalformedArtifactError / SchemaMismatchError."""
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedArtifactError(fmt.value, f"not UTF-8 text ({e.reason})")
    if fmt is BackupFormat.JSON:
        return _decode_json(text)
    if fmt is BackupFormat.CSV:
        return ArtifactContents(records=_decode_csv(text))
    if fmt is BackupFormat.SQL:
        return ArtifactContents(records=_decode_sql(text))
    raise ValueError(f"Unsupported backup format: {fmt}")


# ─── JSON ────────────────────────────────────────────────────────

def _encode_json(snapshot: Snapshot, metadata: ArtifactMetadata) -> bytes:
    document: dict = {
        "metadata": metadata.to_dict(),
        "inventory": [r.to_dict() for r in snapshot.records],
    }
    if snapshot.audit_entries is not None:
        document["auditLogs"] = snapshot.audit_entries
    if snapshot.users is not None:
        document["users"] = snapshot.users
    if snapshot.system_settings is not None:
        document["systemSettings"] = snapshot.system_settings
    return json.dumps(
        document, ensure_ascii=False, indent=2, default=str,
    ).encode("utf-8")


def _decode_json(text: str) -> ArtifactContents:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedArtifactError("JSON", f"{e.msg} at line {e.lineno}")
    if not isinstance(document, dict):
        raise SchemaMismatchError("$", "must be an object")
    if "metadata" not in document:
        raise SchemaMismatchError("metadata", "is required")
    metadata = ArtifactMetadata.from_dict(document["metadata"])

    inventory = document.get("inventory")
    if not isinstance(inventory, list):
        raise SchemaMismatchError("inventory", "must be an array")
    records = [InventoryRecord.from_dict(item) for item in inventory]
    if metadata.record_count != len(records):
        raise SchemaMismatchError(
            "metadata.recordCount",
            f"declares {metadata.record_count} records, found {len(records)}",
        )

    return ArtifactContents(
        records=records,
        metadata=metadata,
        audit_entries=_optional_array(document, "auditLogs"),
        users=_optional_array(document, "users"),
        system_settings=_optional_array(document, "systemSettings"),
    )


def _optional_array(document: dict, key: str) -> list | None:
    value = document.get(key)
    if value is not None and not isinstance(value, list):
        raise SchemaMismatchError(key, "must be an array")
    return value


# ─── CSV ─────────────────────────────────────────────────────────

def _encode_csv(records: list[InventoryRecord]) -> bytes:
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(RECORD_FIELDS)
    for record in records:
        row = record.to_dict()
        writer.writerow(
            "" if row[name] is None else row[name] for name in RECORD_FIELDS
        )
    return buffer.getvalue().encode("utf-8")


def _decode_csv(text: str) -> list[InventoryRecord]:
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        rows = list(reader)
    except csv.Error as e:
        raise MalformedArtifactError("CSV", str(e))
    if not rows:
        raise MalformedArtifactError("CSV", "missing header row")
    header, body = rows[0], rows[1:]
    if tuple(header) != RECORD_FIELDS:
        raise SchemaMismatchError(
            "header", f"must be {','.join(RECORD_FIELDS)}",
        )

    records = []
    for line_no, row in enumerate(body, start=2):
        if len(row) != len(RECORD_FIELDS):
            raise MalformedArtifactError(
                "CSV", f"row {line_no} has {len(row)} fields, expected {len(RECORD_FIELDS)}",
            )
        records.append(InventoryRecord.from_dict(_typed_row(dict(zip(RECORD_FIELDS, row)))))
    return records


def _typed_row(raw: dict[str, str]) -> dict:
    """Convert CSV strings back to the JSON-shaped field types."""
    typed: dict = {}
    for name, value in raw.items():
        if name in _INT_FIELDS:
            try:
                typed[name] = int(value)
            except ValueError:
                raise SchemaMismatchError(name, f"must be an integer, got '{value}'")
        elif name in _OPTIONAL_FIELDS and value == "":
            typed[name] = None
        else:
            typed[name] = value
    return typed


# ─── SQL ─────────────────────────────────────────────────────────

_SQL_COLUMNS = (
    'id, "itemName", batch, quantity, reject, destination, category, notes, '
    '"enteredBy", "createdAt", "updatedAt"'
)
_INSERT_PREFIX = re.compile(
    r"INSERT\s+INTO\s+inventory_items\s*\(([^)]*)\)\s*VALUES\s*\(",
    re.IGNORECASE,
)
_INTEGER = re.compile(r"-?\d+")


def _sql_literal(value) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, int):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def _encode_sql(records: list[InventoryRecord], metadata: ArtifactMetadata) -> bytes:
    lines = [
        "-- Stockroom Inventory Backup SQL Dump",
        f"-- Backup: {metadata.backup_id}",
        f"-- Generated: {metadata.created_at.isoformat()}",
        f"-- Records: {metadata.record_count}",
        "",
    ]
    for record in records:
        row = record.to_dict()
        values = ", ".join(_sql_literal(row[name]) for name in RECORD_FIELDS)
        lines.append(f"INSERT INTO inventory_items ({_SQL_COLUMNS}) VALUES ({values});")
    return ("\n".join(lines) + "\n").encode("utf-8")


def _decode_sql(text: str) -> list[InventoryRecord]:
    records = []
    pos = _skip_blank(text, 0)
    while pos < len(text):
        match = _INSERT_PREFIX.match(text, pos)
        if not match:
            raise MalformedArtifactError("SQL", f"expected INSERT statement at offset {pos}")
        columns = [c.strip().strip('"') for c in match.group(1).split(",")]
        if tuple(columns) != RECORD_FIELDS:
            raise SchemaMismatchError("columns", f"must be {', '.join(RECORD_FIELDS)}")
        values, pos = _scan_values(text, match.end())
        if len(values) != len(RECORD_FIELDS):
            raise MalformedArtifactError(
                "SQL", f"statement has {len(values)} values, expected {len(RECORD_FIELDS)}",
            )
        records.append(InventoryRecord.from_dict(dict(zip(RECORD_FIELDS, values))))
        pos = _skip_blank(text, pos)
    return records


def _skip_blank(text: str, pos: int) -> int:
    """Skip whitespace and `--` comment lines."""
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
        elif text.startswith("--", pos):
            end = text.find("\n", pos)
            pos = len(text) if end == -1 else end + 1
        else:
            break
    return pos


def _scan_values(text: str, pos: int) -> tuple[list, int]:
    """Scan `v1, v2, ...);` starting just after the opening parenthesis."""
    values: list = []
    while True:
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if pos >= len(text):
            raise MalformedArtifactError("SQL", "unterminated VALUES list")
        if text[pos] == "'":
            value, pos = _scan_string(text, pos + 1)
            values.append(value)
        elif text.startswith("NULL", pos):
            values.append(None)
            pos += 4
        else:
            number = _INTEGER.match(text, pos)
            if not number:
                raise MalformedArtifactError("SQL", f"unexpected token at offset {pos}")
            values.append(int(number.group()))
            pos = number.end()
        while pos < len(text) and text[pos].isspace():
            pos += 1
        if text.startswith(",", pos):
            pos += 1
            continue
        if text.startswith(");", pos):
            return values, pos + 2
        raise MalformedArtifactError("SQL", f"expected ',' or ');' at offset {pos}")


def _scan_string(text: str, pos: int) -> tuple[str, int]:
    chunks = []
    while True:
        end = text.find("'", pos)
        if end == -1:
            raise MalformedArtifactError("SQL", "unterminated string literal")
        chunks.append(text[pos:end])
        if text.startswith("''", end):
            chunks.append("'")
            pos = end + 2
            continue
        return "".join(chunks), end + 1
