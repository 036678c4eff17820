"""Artifact Codec — encode/decode round trips, quoting, checksums and structural errors.

Tests:
    - decode(encode(R)) == R for JSON, CSV and SQL, order preserved
    - CSV quotes delimiter / quote / newline; SQL escapes single quotes
    - JSON carries the metadata block and optional audit / users / settings arrays
    - Malformed bytes -> MalformedArtifactError; bad shapes -> SchemaMismatchError
    - checksum is deterministic and sensitive to a single byte
"""

import json
from uuid import uuid4

import pytest

from stockroom.core import artifact_codec
from stockroom.core.artifact_codec import ArtifactMetadata, Snapshot
from stockroom.core.domain_types import BackupFormat
from stockroom.core.errors import MalformedArtifactError, SchemaMismatchError
from stockroom.core.inventory_record import RECORD_FIELDS
from tests.factories import T0, make_record, scenario_records


def _metadata(records, includes_audit=False):
    return ArtifactMetadata(
        backup_id=uuid4(), created_at=T0, created_by="Dana Ops",
        record_count=len(records), includes_audit=includes_audit,
    )


@pytest.mark.parametrize("fmt", list(BackupFormat))
def test_round_trip_preserves_records_and_order(fmt):
    records = scenario_records() + [
        make_record(item_name="Tape, duct", notes="it's 'quoted'", category="  "),
    ]
    data = artifact_codec.encode(Snapshot(records), _metadata(records), fmt)

    decoded = artifact_codec.decode(data, fmt)

    assert decoded.records == records


@pytest.mark.parametrize("fmt", list(BackupFormat))
def test_round_trip_of_empty_snapshot(fmt):
    data = artifact_codec.encode(Snapshot([]), _metadata([]), fmt)
    assert artifact_codec.decode(data, fmt).records == []


def test_csv_quotes_delimiter_quote_and_newline():
    record = make_record(item_name='Pipe, 1/2" copper', notes="line one\nline two")
    data = artifact_codec.encode(Snapshot([record]), _metadata([record]), BackupFormat.CSV)
    text = data.decode("utf-8")

    assert text.splitlines()[0] == ",".join(RECORD_FIELDS)
    assert '"Pipe, 1/2"" copper"' in text
    assert '"line one\nline two"' in text


def test_sql_escapes_single_quotes_and_writes_null():
    record = make_record(item_name="O'Brien's bolts", notes=None)
    data = artifact_codec.encode(Snapshot([record]), _metadata([record]), BackupFormat.SQL)
    text = data.decode("utf-8")

    assert text.startswith("-- Stockroom Inventory Backup SQL Dump")
    assert "'O''Brien''s bolts'" in text
    assert ", NULL, " in text
    assert artifact_codec.decode(data, BackupFormat.SQL).records == [record]


def test_json_document_layout():
    records = scenario_records()
    snapshot = Snapshot(
        records,
        audit_entries=[{"id": "a1", "action": "CREATE"}],
        users=[{"id": "u1", "name": "Dana"}],
        system_settings=[{"key": "k", "value": 1}],
    )
    metadata = _metadata(records, includes_audit=True)

    document = json.loads(artifact_codec.encode(snapshot, metadata, BackupFormat.JSON))

    assert document["metadata"] == {
        "backupId": str(metadata.backup_id),
        "createdAt": T0.isoformat(),
        "createdBy": "Dana Ops",
        "recordCount": 3,
        "includesAudit": True,
    }
    assert [item["itemName"] for item in document["inventory"]] == ["Bolts", "Nuts", "Washers"]
    assert document["auditLogs"] == [{"id": "a1", "action": "CREATE"}]
    assert document["users"] == [{"id": "u1", "name": "Dana"}]
    assert document["systemSettings"] == [{"key": "k", "value": 1}]


def test_json_decode_returns_metadata_and_extras():
    records = scenario_records()
    metadata = _metadata(records, includes_audit=True)
    data = artifact_codec.encode(
        Snapshot(records, audit_entries=[{"id": "a1"}]), metadata, BackupFormat.JSON,
    )

    contents = artifact_codec.decode(data, BackupFormat.JSON)

    assert contents.metadata == metadata
    assert contents.audit_entries == [{"id": "a1"}]
    assert contents.users is None


def test_json_without_audit_omits_the_array():
    records = scenario_records()
    data = artifact_codec.encode(Snapshot(records), _metadata(records), BackupFormat.JSON)
    assert "auditLogs" not in json.loads(data)


# ─── Structural errors ──────────────────────────────────────────

def test_invalid_json_is_malformed():
    with pytest.raises(MalformedArtifactError):
        artifact_codec.decode(b'{"metadata": ', BackupFormat.JSON)


def test_non_utf8_bytes_are_malformed():
    with pytest.raises(MalformedArtifactError):
        artifact_codec.decode(b"\xff\xfe\x00garbage", BackupFormat.CSV)


def test_json_missing_required_field_is_schema_mismatch():
    records = [make_record()]
    document = json.loads(artifact_codec.encode(Snapshot(records), _metadata(records), BackupFormat.JSON))
    del document["inventory"][0]["batch"]

    with pytest.raises(SchemaMismatchError) as exc_info:
        artifact_codec.decode(json.dumps(document).encode(), BackupFormat.JSON)
    assert exc_info.value.field == "batch"


def test_json_wrong_type_is_schema_mismatch():
    records = [make_record()]
    document = json.loads(artifact_codec.encode(Snapshot(records), _metadata(records), BackupFormat.JSON))
    document["inventory"][0]["quantity"] = "ten"

    with pytest.raises(SchemaMismatchError):
        artifact_codec.decode(json.dumps(document).encode(), BackupFormat.JSON)


def test_json_record_count_disagreement_is_schema_mismatch():
    records = scenario_records()
    document = json.loads(artifact_codec.encode(Snapshot(records), _metadata(records), BackupFormat.JSON))
    document["inventory"].pop()

    with pytest.raises(SchemaMismatchError):
        artifact_codec.decode(json.dumps(document).encode(), BackupFormat.JSON)


def test_csv_short_row_is_malformed():
    header = ",".join(RECORD_FIELDS)
    with pytest.raises(MalformedArtifactError):
        artifact_codec.decode(f"{header}\r\nonly,three,fields\r\n".encode(), BackupFormat.CSV)


def test_csv_wrong_header_is_schema_mismatch():
    with pytest.raises(SchemaMismatchError):
        artifact_codec.decode(b"id,name\r\n", BackupFormat.CSV)


def test_csv_non_integer_quantity_is_schema_mismatch():
    record = make_record()
    text = artifact_codec.encode(Snapshot([record]), _metadata([record]), BackupFormat.CSV).decode()
    text = text.replace(",10,1,", ",ten,1,")

    with pytest.raises(SchemaMismatchError):
        artifact_codec.decode(text.encode(), BackupFormat.CSV)


def test_sql_truncated_statement_is_malformed():
    record = make_record()
    data = artifact_codec.encode(Snapshot([record]), _metadata([record]), BackupFormat.SQL)

    with pytest.raises(MalformedArtifactError):
        artifact_codec.decode(data[:-20], BackupFormat.SQL)


def test_sql_foreign_statement_is_malformed():
    with pytest.raises(MalformedArtifactError):
        artifact_codec.decode(b"DROP TABLE inventory_items;\n", BackupFormat.SQL)


# ─── Checksum ───────────────────────────────────────────────────

def test_checksum_is_deterministic_sha256_hex():
    data = b"stockroom backup bytes"
    assert artifact_codec.checksum(data) == artifact_codec.checksum(bytes(data))
    assert len(artifact_codec.checksum(data)) == 64


def test_checksum_changes_with_one_byte():
    records = scenario_records()
    data = artifact_codec.encode(Snapshot(records), _metadata(records), BackupFormat.JSON)
    mutated = bytearray(data)
    mutated[len(mutated) // 2] ^= 0x01

    assert artifact_codec.checksum(bytes(mutated)) != artifact_codec.checksum(data)
