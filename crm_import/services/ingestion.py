from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..config.loader import ImportSettings
from ..db.insert import RecordRejectedError
from ..db.store import Store
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.import_kind import ImportKind
from ..models.import_result import ImportResult
from .mapping import MappedRecord
from .progress import ProgressTracker
from .validation import is_blank, parse_date

"""Ingestion writer.

Writes validated records one at a time. There is no transaction around the
batch: every record either lands or is skipped on its own, and a skip only
lowers ``imported_count``. Skips are collected in the ErrorLogBuffer.

Only StoreError (connection gone, missing table, ...) escapes; the rows
written before it stay written.
"""

__all__ = [
    "PerRecordSkip",
    "build_row",
    "ingest_records",
]

logger = logging.getLogger(__name__)


class PerRecordSkip(Exception):
    """A single record cannot be written. Never raised out of ingest_records."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        super().__init__(message)


def _text(record: MappedRecord, field: str) -> str | None:
    value = record.get(field)
    if is_blank(value):
        return None
    return str(value).strip()


def _split_name(record: MappedRecord) -> tuple[str, str, str]:
    first = _text(record, "firstName")
    last = _text(record, "lastName")
    name = _text(record, "name")
    if name and (first is None or last is None):
        parts = name.split()
        first = first or parts[0]
        last = last or " ".join(parts[1:])
    first = first or ""
    last = last or ""
    return first, last, name or f"{first} {last}".strip()


def _phone(record: MappedRecord) -> str | None:
    country = _text(record, "phoneCountry")
    number = _text(record, "phoneNumber")
    if country and number:
        return f"{country}{number}"
    return number or country


def _address(record: MappedRecord) -> str | None:
    parts = [p for p in (_text(record, f) for f in ("street", "city", "province")) if p]
    address = ", ".join(parts)
    instructions = _text(record, "deliveryInstructions")
    if instructions:
        address = f"{address}\n{instructions}" if address else instructions
    return address or None


def _check_required(kind: ImportKind, record: MappedRecord) -> None:
    if kind is ImportKind.SALES:
        missing = [f for f in ("customerId", "amount") if is_blank(record.get(f))]
        if missing:
            raise PerRecordSkip("MISSING_REQUIRED", f"missing {', '.join(missing)}")
    elif all(is_blank(record.get(f)) for f in ("firstName", "lastName", "name")):
        raise PerRecordSkip("MISSING_REQUIRED", "missing firstName, lastName and name")


def build_row(kind: ImportKind, record: MappedRecord, settings: ImportSettings) -> dict[str, Any]:
    """Translate a mapped record into a storage row (snake_case columns).

    Absent values are left out so column defaults apply. Raises PerRecordSkip
    when the record lacks the fields every row of its kind needs.
    """
    _check_required(kind, record)
    brand = _text(record, "brand") or settings.default_brand

    if kind is ImportKind.SALES:
        row: dict[str, Any] = {
            "customer_id": _text(record, "customerId"),
            "amount": _text(record, "amount"),
            "status": _text(record, "status") or settings.default_sale_status,
            "brand": brand,
            "product": _text(record, "product"),
            "notes": _text(record, "notes"),
        }
        if not is_blank(record.get("date")):
            row["created_at"] = parse_date(record["date"])
        return {k: v for k, v in row.items() if v is not None}

    first, last, name = _split_name(record)
    row = {
        "name": name,
        "first_name": first,
        "last_name": last,
        "email": _text(record, "email"),
        "phone": _phone(record),
        "phone_country": _text(record, "phoneCountry"),
        "phone_number": _text(record, "phoneNumber"),
        "street": _text(record, "street"),
        "city": _text(record, "city"),
        "province": _text(record, "province"),
        "delivery_instructions": _text(record, "deliveryInstructions"),
        "address": _address(record),
        "source": _text(record, "source") or settings.default_source,
        "brand": brand,
        "notes": _text(record, "notes"),
    }
    if kind is ImportKind.CUSTOMERS:
        row["id_number"] = _text(record, "idNumber")
    else:
        row["status"] = (_text(record, "status") or "new").lower()
        row["customer_lifecycle_stage"] = "lead"
        row["converted_to_customer"] = False
    return {k: v for k, v in row.items() if v is not None}


def _write_one(kind: ImportKind, record: MappedRecord, store: Store, settings: ImportSettings) -> Any:
    row = build_row(kind, record, settings)
    if kind is ImportKind.SALES and not store.customer_exists(row["customer_id"]):
        raise PerRecordSkip("CUSTOMER_NOT_FOUND", f"customer {row['customer_id']} does not exist")
    try:
        return store.insert(kind, row)
    except RecordRejectedError as e:
        raise PerRecordSkip("STORE_REJECTED", str(e)) from e


def ingest_records(
    records: Sequence[MappedRecord],
    kind: ImportKind,
    store: Store,
    settings: ImportSettings | None = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    file_name: str = "<records>",
    progress: bool | None = None,
) -> ImportResult:
    """Write ``records`` sequentially and report how many landed.

    Args:
        records: validated mapped records
        kind: target import kind
        store: persistence backend
        settings: defaults for source/brand/status; built-in defaults if omitted
        error_log: receives one entry per skipped record; flushed before returning
        file_name: recorded in skip log entries
        progress: force the tqdm bar on/off (TTY detection by default)

    Raises:
        StoreError: the store failed for a reason unrelated to the record
    """
    settings = settings or ImportSettings()
    imported = 0
    try:
        with ProgressTracker(len(records), description=kind.value, enabled=progress) as tracker:
            for row_no, record in enumerate(records, start=1):
                try:
                    _write_one(kind, record, store, settings)
                except PerRecordSkip as skip:
                    logger.warning(f"{kind.value} row {row_no} skipped: {skip}")
                    if error_log is not None:
                        error_log.append(
                            ErrorRecord.create(
                                file=file_name,
                                kind=kind.value,
                                row=row_no,
                                error_type=skip.error_type,
                                message=str(skip),
                            )
                        )
                    tracker.advance(skipped=True)
                    continue
                imported += 1
                tracker.advance()
    finally:
        if error_log is not None:
            path = error_log.flush()
            if path is not None and len(error_log):
                logger.info(f"skip log: {path}")

    result = ImportResult.create(imported, len(records))
    logger.info(f"{kind.value}: {result.message}")
    return result
