from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Skip log buffering.

Rows the ingestion writer drops are collected as ErrorRecord entries and
flushed as JSON Lines to ``<dir>/import-errors-YYYYMMDD-HHMMSS.log`` (UTC).
The file is created lazily, so an import without skips leaves no file behind.
A buffer built with ``log_dir=None`` keeps entries in memory only.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
]

DEFAULT_LOG_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for skip entries; ``flush`` appends them to the log file."""

    def __init__(self, log_dir: Path | str | None = DEFAULT_LOG_DIR) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self._records: list[ErrorRecord] = []
        self._written: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path | None:
        if self.log_dir is None:
            return None
        if self._file_path is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.log_dir / f"import-errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        """Everything appended so far, flushed or not."""
        return [*self._written, *self._records]

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._written) + len(self._records)

    def flush(self) -> Path | None:
        """Write pending entries; returns the file path, or None if nothing was written."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        if fp is not None:
            with fp.open("a", encoding="utf-8") as f:
                for r in self._records:
                    f.write(r.to_json_line() + "\n")
        self._written.extend(self._records)
        self._records.clear()
        return fp
