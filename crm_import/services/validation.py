from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..models.import_kind import ImportKind
from .mapping import MappedRecord

"""Record validator: batch-blocking checks per import kind.

Rules run in a fixed order and the first rule with offenders wins; the error
names that rule and how many records broke it. Blank values (None or
whitespace only) count as "not present" for the optional-field rules.
"""

__all__ = [
    "CONTACT_BRANDS",
    "LEAD_STATUSES",
    "RULES",
    "SALE_BRANDS",
    "ValidationError",
    "is_blank",
    "parse_date",
    "parse_number",
    "validate_records",
]

CONTACT_BRANDS = frozenset({"sleepwear", "bride", "sleepwear,bride", "bride,sleepwear"})
SALE_BRANDS = frozenset({"sleepwear", "bride"})
LEAD_STATUSES = frozenset({"new", "contacted", "qualified", "proposal", "negotiation", "won", "lost"})
DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")

_CONTACTS = frozenset({ImportKind.CUSTOMERS, ImportKind.LEADS})
_SALES = frozenset({ImportKind.SALES})
_ALL = frozenset(ImportKind)


class ValidationError(Exception):
    """Raised when one or more mapped records break a batch-blocking rule."""

    def __init__(self, message: str, rule: str, offending_count: int):
        self.rule = rule
        self.offending_count = offending_count
        super().__init__(message)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_number(value: Any) -> float | None:
    """Parse ints, floats and numeric strings ("120.50" or "120,50"); None if not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _lacks_name(record: MappedRecord) -> bool:
    has_split = not is_blank(record.get("firstName")) and not is_blank(record.get("lastName"))
    return not has_split and is_blank(record.get("name"))


def _bad_sale_amounts(record: MappedRecord) -> bool:
    customer_id = parse_number(record.get("customerId"))
    amount = parse_number(record.get("amount"))
    return customer_id is None or amount is None or customer_id <= 0 or amount <= 0


def _optional(field: str, check: Callable[[Any], bool]) -> Callable[[MappedRecord], bool]:
    """Offending when the field is present (non-blank) and ``check`` rejects it."""
    def offending(record: MappedRecord) -> bool:
        value = record.get(field)
        return not is_blank(value) and not check(value)
    return offending


@dataclass(frozen=True)
class Rule:
    name: str
    kinds: frozenset[ImportKind]
    is_offending: Callable[[MappedRecord], bool]
    message: str  # formatted with {count}


RULES: tuple[Rule, ...] = (
    Rule(
        "name_required",
        _CONTACTS,
        _lacks_name,
        "{count} record(s) have neither firstName and lastName nor name",
    ),
    Rule(
        "sale_required",
        _SALES,
        lambda r: is_blank(r.get("customerId")) or is_blank(r.get("amount")),
        "{count} record(s) are missing customerId or amount",
    ),
    Rule(
        "sale_numbers",
        _SALES,
        _bad_sale_amounts,
        "{count} record(s) have a customerId or amount that is not a positive number",
    ),
    Rule(
        "contact_brand",
        _CONTACTS,
        _optional("brand", lambda v: str(v).strip().lower() in CONTACT_BRANDS),
        "{count} record(s) have an invalid brand (allowed: sleepwear, bride, sleepwear,bride)",
    ),
    Rule(
        "sale_brand",
        _SALES,
        _optional("brand", lambda v: str(v).strip().lower() in SALE_BRANDS),
        "{count} record(s) have an invalid brand (allowed: sleepwear, bride)",
    ),
    Rule(
        "phone_country",
        _ALL,
        _optional("phoneCountry", lambda v: str(v).strip().startswith("+")),
        "{count} record(s) have a phoneCountry that does not start with '+'",
    ),
    Rule(
        "lead_status",
        frozenset({ImportKind.LEADS}),
        _optional("status", lambda v: str(v).strip().lower() in LEAD_STATUSES),
        "{count} record(s) have an invalid status (allowed: " + ", ".join(sorted(LEAD_STATUSES)) + ")",
    ),
    Rule(
        "sale_date",
        _SALES,
        _optional("date", lambda v: parse_date(v) is not None),
        "{count} record(s) have an invalid date",
    ),
)


def validate_records(records: Sequence[MappedRecord], kind: ImportKind) -> None:
    """Raise ValidationError for the first rule that any record breaks."""
    if not records:
        raise ValidationError("No data found to import", rule="no_data", offending_count=0)
    for rule in RULES:
        if kind not in rule.kinds:
            continue
        count = sum(1 for r in records if rule.is_offending(r))
        if count:
            raise ValidationError(rule.message.format(count=count), rule=rule.name, offending_count=count)
