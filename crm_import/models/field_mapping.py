from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "FieldMapping",
]


@dataclass(frozen=True)
class FieldMapping:
    """Correspondence from one source column to a canonical field.

    An empty ``target_field`` means the column is not imported.
    """
    source_field: str
    target_field: str = ""

    @property
    def is_mapped(self) -> bool:
        return bool(self.target_field)

    def to_dict(self) -> dict[str, str]:
        # Wire form shared with the mapping UI
        return {"sourceField": self.source_field, "targetField": self.target_field}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> FieldMapping:
        if not isinstance(data, dict):
            raise ValueError(f"mapping must be an object: {data!r}")
        source = data.get("sourceField", data.get("source_field"))
        if not isinstance(source, str) or not source:
            raise ValueError(f"mapping without sourceField: {data!r}")
        target = data.get("targetField", data.get("target_field")) or ""
        if not isinstance(target, str):
            raise ValueError(f"mapping targetField must be a string: {data!r}")
        return FieldMapping(source_field=source, target_field=target)
