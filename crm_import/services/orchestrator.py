from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config.loader import ImportSettings
from ..db.store import Store
from ..logging.error_log import ErrorLogBuffer
from ..models.field_mapping import FieldMapping
from ..models.import_kind import CanonicalField, ImportKind, canonical_fields, canonical_names
from ..models.import_result import ImportResult
from ..parsing.headers import normalize_records
from ..parsing.reader import FileKind, RawRecord, parse_file
from .ingestion import ingest_records
from .mapping import (
    MappedRecord,
    apply_mappings,
    mappings_from_json,
    normalize_brand,
    propose_mappings,
    verify_mappings,
)
from .validation import validate_records

"""Pipeline orchestration: parse -> normalize -> map -> validate -> ingest.

Three entry points, one per way an import reaches the server:

- ``preview_file``: upload, look at the first rows and the proposed mapping
- ``commit_file``: upload again with the confirmed mapping and write it
- ``process_client_records``: records already parsed by the client

Batch-blocking failures propagate unchanged (ParseError,
MappingIncompleteError, ValidationError, InvalidImportKindError);
ProcessingError covers malformed request payloads.
"""

__all__ = [
    "LoadedFile",
    "PreviewResult",
    "ProcessingError",
    "commit_file",
    "load_records",
    "preview_file",
    "process_client_records",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Request payload that cannot be interpreted (bad JSON, wrong shape)."""


@dataclass
class LoadedFile:
    headers: list[str]  # normalized, index-aligned with source_headers
    source_headers: list[str]
    records: list[RawRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class PreviewResult:
    data: list[RawRecord]
    headers: list[str]
    mappings: list[FieldMapping]
    fields: Sequence[CanonicalField]
    total: int

    def to_response(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "headers": self.headers,
            "mappings": [m.to_dict() for m in self.mappings],
            "fields": [
                {"name": f.name, "required": f.required, "description": f.description} for f in self.fields
            ],
            "total": self.total,
        }


def _decode_json(payload: Any, what: str) -> Any:
    if not isinstance(payload, (str, bytes)):
        return payload
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProcessingError(f"{what} is not valid JSON: {e.msg}") from e


def load_records(
    buffer: bytes, filename: str | None = None, file_kind: str | FileKind | None = None
) -> LoadedFile:
    """Parse an uploaded file and normalize its headers."""
    parsed = parse_file(buffer, filename, file_kind)
    headers, records = normalize_records(parsed.headers, parsed.records)
    logger.debug(f"parsed {len(records)} records headers={headers}")
    return LoadedFile(headers=headers, source_headers=list(parsed.headers), records=records)


def preview_file(
    buffer: bytes,
    kind: ImportKind | str,
    settings: ImportSettings | None = None,
    *,
    filename: str | None = None,
    file_kind: str | FileKind | None = None,
) -> PreviewResult:
    kind = ImportKind.parse(kind)
    settings = settings or ImportSettings()
    loaded = load_records(buffer, filename, file_kind)
    return PreviewResult(
        data=loaded.records[: settings.preview_limit],
        headers=loaded.headers,
        mappings=propose_mappings(loaded.headers, kind),
        fields=canonical_fields(kind),
        total=len(loaded),
    )


def _resolve_sources(mappings: list[FieldMapping], loaded: LoadedFile) -> list[FieldMapping]:
    """Let mappings name either the normalized header or the header as it appears in the file."""
    known = set(loaded.headers)
    by_source = dict(zip(loaded.source_headers, loaded.headers))
    resolved = []
    for m in mappings:
        if m.source_field not in known:
            target = by_source.get(m.source_field) or by_source.get(m.source_field.strip())
            if target:
                m = FieldMapping(source_field=target, target_field=m.target_field)
        resolved.append(m)
    return resolved


def _filter_mapped_data(payload: Any, kind: ImportKind) -> list[MappedRecord]:
    """Client-mapped rows: keep canonical keys only and re-run brand normalization."""
    if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
        raise ProcessingError("mappedData must be a JSON array of objects")
    allowed = set(canonical_names(kind))
    records = []
    for raw in payload:
        record = {k: v for k, v in raw.items() if k in allowed}
        if record.get("brand"):
            record["brand"] = normalize_brand(record["brand"])
        records.append(record)
    return records


def _parse_mappings(payload: Any) -> list[FieldMapping]:
    data = _decode_json(payload, "mappings")
    try:
        return mappings_from_json(data)
    except ValueError as e:
        raise ProcessingError(f"invalid mappings: {e}") from e


def _validate_and_ingest(
    records: list[MappedRecord],
    kind: ImportKind,
    store: Store,
    settings: ImportSettings,
    error_log: ErrorLogBuffer | None,
    file_name: str,
    progress: bool | None,
) -> ImportResult:
    validate_records(records, kind)
    logger.info(f"{kind.value}: {len(records)} records validated")
    return ingest_records(
        records,
        kind,
        store,
        settings,
        error_log=error_log,
        file_name=file_name,
        progress=progress,
    )


def commit_file(
    buffer: bytes,
    kind: ImportKind | str,
    store: Store,
    settings: ImportSettings | None = None,
    *,
    filename: str | None = None,
    file_kind: str | FileKind | None = None,
    mappings: Any = None,
    mapped_data: Any = None,
    error_log: ErrorLogBuffer | None = None,
    progress: bool | None = None,
) -> ImportResult:
    """Import a whole uploaded file.

    Record source, first match wins:
        1. ``mappings`` (FieldMapping list or its JSON form): verified, then
           applied to every parsed row
        2. ``mapped_data`` (client-mapped rows or their JSON form): filtered
           to canonical keys
        3. neither: the proposed mapping, verified and applied
    """
    kind = ImportKind.parse(kind)
    settings = settings or ImportSettings()
    loaded = load_records(buffer, filename, file_kind)

    if mappings not in (None, "", b""):
        chosen = _resolve_sources(_parse_mappings(mappings), loaded)
        verify_mappings(chosen, kind)
        records = apply_mappings(loaded.records, chosen, kind)
    elif mapped_data not in (None, "", b""):
        records = _filter_mapped_data(_decode_json(mapped_data, "mappedData"), kind)
    else:
        chosen = propose_mappings(loaded.headers, kind)
        verify_mappings(chosen, kind)
        records = apply_mappings(loaded.records, chosen, kind)

    return _validate_and_ingest(
        records, kind, store, settings, error_log, filename or "<upload>", progress
    )


def process_client_records(
    payload: Any,
    store: Store,
    settings: ImportSettings | None = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    progress: bool | None = None,
) -> ImportResult:
    """Import ``{"records": [...], "type": ...}`` parsed on the client side."""
    payload = _decode_json(payload, "request body")
    if not isinstance(payload, dict):
        raise ProcessingError("request body must be a JSON object")
    records = payload.get("records")
    if records is None or payload.get("type") in (None, ""):
        raise ProcessingError("records and type are required")
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ProcessingError("records must be an array of objects")
    kind = ImportKind.parse(payload["type"])
    settings = settings or ImportSettings()

    source_headers: list[str] = []
    for r in records:
        source_headers.extend(str(k) for k in r if str(k) not in source_headers)
    raw = [{str(k): v for k, v in r.items()} for r in records]
    headers, normalized = normalize_records(source_headers, raw)

    mapped: list[MappedRecord] = []
    if normalized:
        chosen = propose_mappings(headers, kind)
        verify_mappings(chosen, kind)
        mapped = apply_mappings(normalized, chosen, kind)
    logger.debug(f"client records: {len(mapped)} headers={headers}")
    return _validate_and_ingest(mapped, kind, store, settings, error_log, "<records>", progress)
