from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any

import pandas as pd

"""Row parser for uploaded CSV and spreadsheet files.

One parser serves every entry point (HTTP upload, CLI, client-parsed payloads
that arrive as text). Quoting contract for CSV:

- a field wrapped in double quotes may contain the delimiter and newlines
- inside a quoted field a doubled quote ("") is one literal quote
- a line that is entirely empty is skipped, a line of empty fields is not
- a repeated header name gets its column position appended (Nombre, Nombre_2)
- a row with fewer fields than the header omits the missing trailing keys
  instead of filling them with "" so callers can tell "not provided" from
  "provided but empty"

Spreadsheets are read as display strings (dtype=str, no NA coercion) so phone
numbers, ids and values containing ';' reach the mapping layer untouched.
"""

__all__ = [
    "FileKind",
    "ParseError",
    "ParsedFile",
    "RawRecord",
    "decode_text",
    "detect_delimiter",
    "detect_file_kind",
    "parse_csv",
    "parse_file",
    "read_spreadsheet",
]

RawRecord = dict[str, Any]

SNIFF_LINES = 3
SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm"}
ZIP_MAGIC = b"PK\x03\x04"  # xlsx is a zip container
_MIDNIGHT_SUFFIX = re.compile(r"^(\d{4}-\d{2}-\d{2}) 00:00:00$")


class ParseError(Exception):
    """Raised when the uploaded bytes cannot be turned into records."""


class FileKind(Enum):
    CSV = "csv"
    SPREADSHEET = "spreadsheet"


@dataclass
class ParsedFile:
    headers: list[str]  # header row, source order
    records: list[RawRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


def detect_file_kind(
    buffer: bytes, filename: str | None = None, declared: str | FileKind | None = None
) -> FileKind:
    """Resolve the file kind from an explicit declaration, the name or the magic bytes."""
    if isinstance(declared, FileKind):
        return declared
    if declared:
        try:
            return FileKind(str(declared).lower())
        except ValueError as e:
            raise ParseError(f"unsupported file kind: {declared}") from e
    if filename and PurePath(filename).suffix.lower() in SPREADSHEET_SUFFIXES:
        return FileKind.SPREADSHEET
    if buffer.startswith(ZIP_MAGIC):
        return FileKind.SPREADSHEET
    return FileKind.CSV


def decode_text(buffer: bytes) -> str:
    # utf-8 first (BOM tolerated), then the Windows code page Excel uses for
    # Spanish locales when saving "CSV (delimitado por comas)"
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return buffer.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError("file is not readable as text (unknown encoding)")


def detect_delimiter(text: str) -> str:
    """Pick ';' when it strictly outnumbers ',' in the first lines, else ','."""
    sample = "\n".join(re.split(r"\r?\n", text)[:SNIFF_LINES])
    return ";" if sample.count(";") > sample.count(",") else ","


def _is_blank_line(row: list[str]) -> bool:
    return not row or (len(row) == 1 and row[0].strip() == "")


def _unique_headers(headers: list[str]) -> list[str]:
    """Suffix a repeated header with its 1-based column position so no column is overwritten."""
    seen: set[str] = set()
    unique: list[str] = []
    for position, header in enumerate(headers, start=1):
        while header and header in seen:
            header = f"{header}_{position}"
        seen.add(header)
        unique.append(header)
    return unique


def parse_csv(data: bytes | str) -> ParsedFile:
    text = decode_text(data) if isinstance(data, bytes) else data
    delimiter = detect_delimiter(text)
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, quotechar='"', doublequote=True)
    try:
        header_row = next(reader, None)
        if header_row is None or _is_blank_line(header_row):
            raise ParseError("header line is empty")
        headers = _unique_headers([h.strip() for h in header_row])
        if not any(headers):
            raise ParseError("header line is empty")

        records: list[RawRecord] = []
        for row in reader:
            if _is_blank_line(row):
                continue
            record: RawRecord = {}
            for header, value in zip(headers, row):  # shorter rows stop early
                if header:
                    record[header] = value
            records.append(record)
    except csv.Error as e:
        raise ParseError(f"malformed CSV at line {reader.line_num}: {e}") from e

    return ParsedFile(headers=[h for h in headers if h], records=records)


def _display_string(value: Any) -> str | None:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value)
    if text == "":
        return None
    match = _MIDNIGHT_SUFFIX.match(text)
    if match:
        return match.group(1)
    return text


def read_spreadsheet(buffer: bytes) -> ParsedFile:
    """Decode the first sheet of an .xlsx workbook using its first row as header."""
    try:
        sheets = pd.read_excel(
            io.BytesIO(buffer),
            sheet_name=None,
            header=None,
            dtype=str,
            keep_default_na=False,
            engine="openpyxl",
        )
    except Exception as e:
        raise ParseError(f"unreadable spreadsheet: {e}") from e

    if not sheets:
        raise ParseError("workbook contains no sheets")
    df = next(iter(sheets.values()))
    if df.shape[0] == 0 or df.shape[1] == 0:
        # no populated range
        return ParsedFile(headers=[], records=[])

    header_cells = [_display_string(v) for v in df.iloc[0].tolist()]
    headers = _unique_headers([h.strip() if h else "" for h in header_cells])
    if not any(headers):
        raise ParseError("header row is empty")

    records: list[RawRecord] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        record: RawRecord = {}
        for header, value in zip(headers, raw):
            if not header:
                continue
            text = _display_string(value)
            if text is not None:
                record[header] = text
        if record:
            records.append(record)
    return ParsedFile(headers=[h for h in headers if h], records=records)


def parse_file(
    buffer: bytes, filename: str | None = None, file_kind: str | FileKind | None = None
) -> ParsedFile:
    if not isinstance(buffer, (bytes, bytearray)):
        raise ParseError("file content must be bytes")
    kind = detect_file_kind(bytes(buffer), filename, file_kind)
    if kind is FileKind.SPREADSHEET:
        return read_spreadsheet(bytes(buffer))
    return parse_csv(bytes(buffer))
