from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""ImportResult model: terminal artifact of a finished ingestion."""

__all__ = [
    "ImportResult",
]


@dataclass(frozen=True)
class ImportResult:
    imported_count: int  # rows actually written
    total_count: int  # input size
    message: str

    @property
    def skipped_count(self) -> int:
        return self.total_count - self.imported_count

    @property
    def complete(self) -> bool:
        return self.imported_count == self.total_count

    @staticmethod
    def create(imported_count: int, total_count: int) -> ImportResult:
        return ImportResult(
            imported_count=imported_count,
            total_count=total_count,
            message=f"Imported {imported_count} of {total_count} records",
        )

    def to_response(self) -> dict[str, Any]:
        return {
            "success": True,
            "count": self.imported_count,
            "total": self.total_count,
            "message": self.message,
        }
