from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Record progress bar for the ingestion writer (TTY only).

One tqdm bar per import. In non-TTY environments (CI, the HTTP server, piped
CLI output) the tracker is inert, so log lines are not interleaved with ANSI
control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress over the records of a single import.

    Args:
        total_records: number of mapped records to ingest
        description: bar label, usually the import kind
        enabled: force on/off; defaults to TTY detection
    """

    def __init__(
        self,
        total_records: int,
        *,
        description: str = "Importing",
        enabled: bool | None = None,
    ) -> None:
        self.total_records = total_records
        self.description = description
        self.processed = 0
        self.skipped = 0

        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_records,
                desc=description,
                unit="row",
                leave=True,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, skipped: bool = False) -> None:
        self.processed += 1
        if skipped:
            self.skipped += 1
        if self.pbar is not None:
            self.pbar.update(1)
            if skipped:
                self.pbar.set_postfix(skipped=self.skipped)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
