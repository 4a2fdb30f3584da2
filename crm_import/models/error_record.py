from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the per-record skip log.

A record excluded from ingestion is not an error for the caller (it only shows
up as imported < total), but it is written to the skip log so an operator can
find out which rows were dropped and why. ``row`` is the 1-based data row
within the import; -1 marks import-level entries where no row applies.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured skip/error entry serialized as one JSON line.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file name (or "<records>" for client-parsed payloads)
        kind: Import kind (customers/leads/sales)
        row: 1-based data row number, -1 when unknown
        error_type: Classification in UPPER_SNAKE_CASE
        message: Human readable reason
    """
    timestamp: str
    file: str
    kind: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, kind: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            kind=kind,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # dataclass -> dict keeps the key set fixed
        return json.dumps(asdict(self), ensure_ascii=False)
