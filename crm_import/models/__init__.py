"""Domain models for the CRM spreadsheet import pipeline."""

from .error_record import ErrorRecord
from .field_mapping import FieldMapping
from .import_kind import (
    CANONICAL_FIELDS,
    CanonicalField,
    ImportKind,
    InvalidImportKindError,
    canonical_fields,
    canonical_names,
    required_fields,
)
from .import_result import ImportResult

__all__ = [
    # Import kinds and their fields
    "CANONICAL_FIELDS",
    "CanonicalField",
    "ImportKind",
    "InvalidImportKindError",
    "canonical_fields",
    "canonical_names",
    "required_fields",
    # Pipeline artifacts
    "ErrorRecord",
    "FieldMapping",
    "ImportResult",
]
