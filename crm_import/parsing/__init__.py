"""File parsing and header normalization."""

from .headers import normalize_header, normalize_headers, normalize_records
from .reader import FileKind, ParsedFile, ParseError, RawRecord, detect_delimiter, parse_csv, parse_file, read_spreadsheet

__all__ = [
    "FileKind",
    "ParseError",
    "ParsedFile",
    "RawRecord",
    "detect_delimiter",
    "normalize_header",
    "normalize_headers",
    "normalize_records",
    "parse_csv",
    "parse_file",
    "read_spreadsheet",
]
