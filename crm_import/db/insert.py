from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2

"""Single-row INSERT helper for the ingestion writer.

Imports are written one row per statement with the connection in autocommit
mode, so a rejected row never poisons the rows after it. Driver errors are
split in two:

- RecordRejectedError: the database refused this row (constraint or data
  error). The writer skips the row and carries on.
- StoreError: anything else (lost connection, missing table, ...). This
  aborts the import and surfaces as a 500 / fatal exit.
"""

__all__ = [
    "InsertMetrics",
    "RecordRejectedError",
    "StoreError",
    "insert_row",
]


class StoreError(Exception):
    pass


class RecordRejectedError(Exception):
    pass


@dataclass(frozen=True)
class InsertMetrics:
    table: str
    elapsed_seconds: float


def insert_row(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    values: Sequence[Any],
    returning: str | None = "id",
    metrics_callback: Callable[[InsertMetrics], None] | None = None,
) -> Any:
    """INSERT one row and return the ``returning`` column (None when not requested).

    Parameters
    ----------
    cursor: psycopg2 cursor (autocommit connection)
    table: target table, taken from ImportKind so never user supplied
    columns: column names matching ``values`` position by position
    returning: column to hand back, typically the serial primary key
    metrics_callback: receives the statement timing, used for debug output
    """
    if len(columns) != len(values):
        raise ValueError(f"{len(columns)} columns but {len(values)} values for {table}")

    cols_sql = ",".join(f'"{c}"' for c in columns)
    placeholders = ",".join(["%s"] * len(columns))
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES ({placeholders})"
    if returning:
        sql += f" RETURNING {returning}"

    start = time.perf_counter()
    try:
        cursor.execute(sql, list(values))
        row = cursor.fetchone() if returning else None
    except (psycopg2.IntegrityError, psycopg2.DataError) as e:
        raise RecordRejectedError(str(e).strip()) from e
    except psycopg2.Error as e:
        raise StoreError(str(e).strip()) from e
    finally:
        if metrics_callback is not None:
            metrics_callback(InsertMetrics(table=table, elapsed_seconds=time.perf_counter() - start))

    return row[0] if row else None
