from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""ImportKind enum and the canonical field catalogue for each kind.

The canonical field set decides three things downstream:
- which targets the mapping resolver may propose
- which fields must be mapped before an import may continue
- which keys survive into a MappedRecord
"""

__all__ = [
    "CanonicalField",
    "ImportKind",
    "InvalidImportKindError",
    "CANONICAL_FIELDS",
    "canonical_fields",
    "canonical_names",
    "required_fields",
]


class InvalidImportKindError(ValueError):
    """Raised when a caller names an import kind outside customers/leads/sales."""


class ImportKind(Enum):
    """Category of entity being imported. Selected once per import session."""
    CUSTOMERS = "customers"
    LEADS = "leads"
    SALES = "sales"

    @classmethod
    def parse(cls, value: str | ImportKind | None) -> ImportKind:
        if isinstance(value, ImportKind):
            return value
        if value is None:
            raise InvalidImportKindError("import type is required")
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            allowed = "|".join(k.value for k in cls)
            raise InvalidImportKindError(f"invalid import type '{value}' (expected {allowed})") from e

    @property
    def table(self) -> str:
        return self.value


@dataclass(frozen=True)
class CanonicalField:
    name: str  # camelCase target name
    required: bool
    description: str


_CONTACT_BRAND = "Brand (sleepwear, bride or both separated by comma: sleepwear,bride)"

CANONICAL_FIELDS: dict[ImportKind, tuple[CanonicalField, ...]] = {
    ImportKind.CUSTOMERS: (
        CanonicalField("firstName", True, "Customer first name"),
        CanonicalField("lastName", True, "Customer last name"),
        CanonicalField("name", False, "Full name, used when first and last name are not split"),
        CanonicalField("idNumber", False, "National ID (cedula) or passport number"),
        CanonicalField("email", False, "Email address"),
        CanonicalField("phoneCountry", False, "Country calling code (e.g. +593)"),
        CanonicalField("phoneNumber", False, "Phone number without country code"),
        CanonicalField("street", False, "Street, intersection and house number"),
        CanonicalField("city", False, "City"),
        CanonicalField("province", False, "Province"),
        CanonicalField("deliveryInstructions", False, "Delivery reference or special instructions"),
        CanonicalField("source", False, "Customer origin (e.g. Website, Referral, Social Media)"),
        CanonicalField("brand", False, _CONTACT_BRAND),
        CanonicalField("notes", False, "Additional notes"),
    ),
    ImportKind.LEADS: (
        CanonicalField("firstName", True, "Lead first name"),
        CanonicalField("lastName", True, "Lead last name"),
        CanonicalField("name", False, "Full name, used when first and last name are not split"),
        CanonicalField("email", False, "Email address"),
        CanonicalField("phoneCountry", False, "Country calling code (e.g. +593)"),
        CanonicalField("phoneNumber", False, "Phone number without country code"),
        CanonicalField("status", False, "Status (new, contacted, qualified, proposal, negotiation, won, lost)"),
        CanonicalField("source", False, "Lead origin"),
        CanonicalField("brand", False, _CONTACT_BRAND),
        CanonicalField("street", False, "Street, intersection and house number"),
        CanonicalField("city", False, "City"),
        CanonicalField("province", False, "Province"),
        CanonicalField("deliveryInstructions", False, "Delivery reference or special instructions"),
        CanonicalField("notes", False, "Additional notes"),
    ),
    ImportKind.SALES: (
        CanonicalField("customerId", True, "Customer ID in the CRM"),
        CanonicalField("amount", True, "Sale amount"),
        CanonicalField("status", False, "Status (pending, completed, cancelled)"),
        CanonicalField("date", False, "Sale date (YYYY-MM-DD)"),
        CanonicalField("notes", False, "Additional notes"),
        CanonicalField("product", False, "Product or item sold"),
        CanonicalField("brand", False, "Brand (sleepwear or bride)"),
    ),
}


def canonical_fields(kind: ImportKind) -> tuple[CanonicalField, ...]:
    return CANONICAL_FIELDS[kind]


def canonical_names(kind: ImportKind) -> list[str]:
    return [f.name for f in CANONICAL_FIELDS[kind]]


def required_fields(kind: ImportKind) -> list[str]:
    return [f.name for f in CANONICAL_FIELDS[kind] if f.required]
