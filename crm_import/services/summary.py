from __future__ import annotations

from ..models.import_kind import ImportKind
from ..models.import_result import ImportResult

"""SUMMARY line rendering for the CLI.

Format::

    SUMMARY kind=<kind> imported=<N>/<M> skipped=<K> elapsed_sec=<seconds>
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(kind: ImportKind, result: ImportResult, elapsed_seconds: float) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> render_summary_line(ImportKind.SALES, ImportResult.create(2, 3), 1.5)
        'SUMMARY kind=sales imported=2/3 skipped=1 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY kind={kind.value} "
        f"imported={result.imported_count}/{result.total_count} "
        f"skipped={result.skipped_count} "
        f"elapsed_sec={format_elapsed(elapsed_seconds)}"
    )
