from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from typing import Any

from ..models.field_mapping import FieldMapping
from ..models.import_kind import ImportKind, canonical_names, required_fields
from ..parsing.reader import RawRecord

"""Field mapping resolver.

Proposes a default target for every source header, checks that required
canonical fields are covered before an import continues, and applies the
mapping sequence to raw records. Editing the proposal is the UI's job.
"""

__all__ = [
    "ALLOWED_BRANDS",
    "MappingIncompleteError",
    "MappedRecord",
    "apply_mapping",
    "apply_mappings",
    "mappings_from_json",
    "normalize_brand",
    "propose_mappings",
    "verify_mappings",
]

MappedRecord = dict[str, Any]

ALLOWED_BRANDS = ("sleepwear", "bride")
_MATCH_KEY = re.compile(r"[^a-z0-9]")
_FULL_NAME_KINDS = frozenset({ImportKind.CUSTOMERS, ImportKind.LEADS})


class MappingIncompleteError(Exception):
    """Raised when a required canonical field has no source column mapped to it."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


def _match_key(name: str) -> str:
    return _MATCH_KEY.sub("", name.lower())


def propose_mappings(headers: Iterable[str], kind: ImportKind) -> list[FieldMapping]:
    targets = {_match_key(n): n for n in canonical_names(kind)}
    return [FieldMapping(source_field=h, target_field=targets.get(_match_key(h), "")) for h in headers]


def verify_mappings(mappings: Sequence[FieldMapping], kind: ImportKind) -> None:
    mapped = {m.target_field for m in mappings if m.is_mapped}
    if kind in _FULL_NAME_KINDS and "name" in mapped:
        # a full name column stands in for firstName + lastName
        mapped |= {"firstName", "lastName"}
    missing = [f for f in required_fields(kind) if f not in mapped]
    if missing:
        raise MappingIncompleteError(missing)


def normalize_brand(value: Any) -> str:
    """Keep only known brand tokens, lower-cased, in their original order."""
    tokens = (t.strip().lower() for t in str(value).split(","))
    return ",".join(t for t in tokens if t in ALLOWED_BRANDS)


def apply_mapping(record: RawRecord, mappings: Sequence[FieldMapping], kind: ImportKind) -> MappedRecord:
    allowed = set(canonical_names(kind))
    mapped: MappedRecord = {}
    for m in mappings:
        if m.target_field not in allowed or m.source_field not in record:
            continue
        value = record[m.source_field]
        if m.target_field == "brand" and value:
            value = normalize_brand(value)
        mapped[m.target_field] = value
    return mapped


def apply_mappings(
    records: Iterable[RawRecord], mappings: Sequence[FieldMapping], kind: ImportKind
) -> list[MappedRecord]:
    """Build one MappedRecord per raw record; targets outside the kind's canonical set are ignored."""
    return [apply_mapping(r, mappings, kind) for r in records]


def mappings_from_json(payload: str | bytes | list[Any]) -> list[FieldMapping]:
    """Parse the ``FieldMapping[]`` wire form sent by the mapping UI."""
    data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    if not isinstance(data, list):
        raise ValueError("mappings must be a JSON array")
    return [FieldMapping.from_dict(item) for item in data]
