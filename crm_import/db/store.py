from __future__ import annotations

import itertools
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from importlib import resources
from typing import Any, Protocol

import psycopg2

from ..config.loader import DatabaseConfig
from ..models.import_kind import ImportKind
from .insert import InsertMetrics, RecordRejectedError, StoreError, insert_row

"""Persistence seam for the ingestion writer.

``Store`` is what services talk to. ``PostgresStore`` wraps a psycopg2 cursor;
``MemoryStore`` keeps rows in dicts and backs tests plus ``--dry-run``.
"""

__all__ = [
    "MemoryStore",
    "PostgresStore",
    "Store",
    "connect",
    "ensure_schema",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)


class Store(Protocol):
    def customer_exists(self, customer_id: Any) -> bool: ...

    def insert(self, kind: ImportKind, row: dict[str, Any]) -> Any: ...

    def fetch_all(self, kind: ImportKind) -> list[dict[str, Any]]: ...


def _as_int_id(value: Any) -> int | None:
    """Serial ids are integers; "12" and 12.0 qualify, "12.5" does not."""
    try:
        number = float(str(value).strip().replace(",", "."))
    except ValueError:
        return None
    if not number.is_integer() or number <= 0:
        return None
    return int(number)


class PostgresStore:
    def __init__(self, cursor: Any):
        self.cursor = cursor

    def _log_metrics(self, m: InsertMetrics) -> None:
        logger.debug(f"insert table={m.table} elapsed={m.elapsed_seconds:.4f}s")

    def customer_exists(self, customer_id: Any) -> bool:
        cid = _as_int_id(customer_id)
        if cid is None:
            return False
        try:
            self.cursor.execute("SELECT 1 FROM customers WHERE id = %s", [cid])
            return self.cursor.fetchone() is not None
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def insert(self, kind: ImportKind, row: dict[str, Any]) -> Any:
        if kind is ImportKind.SALES:
            cid = _as_int_id(row.get("customer_id"))
            if cid is not None:
                row = {**row, "customer_id": cid}
        return insert_row(
            self.cursor,
            kind.table,
            list(row.keys()),
            list(row.values()),
            metrics_callback=self._log_metrics,
        )

    def fetch_all(self, kind: ImportKind) -> list[dict[str, Any]]:
        try:
            self.cursor.execute(f"SELECT * FROM {kind.table} ORDER BY id")
            rows = self.cursor.fetchall()
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e
        columns = [d[0] for d in self.cursor.description or []]
        return [dict(zip(columns, r)) for r in rows]


class MemoryStore:
    """Dict-backed store. Required columns mirror the NOT NULL constraints in schema.sql."""

    REQUIRED_COLUMNS = {
        ImportKind.CUSTOMERS: ("first_name", "last_name"),
        ImportKind.LEADS: ("first_name", "last_name", "status", "source"),
        ImportKind.SALES: ("customer_id", "amount", "status"),
    }

    def __init__(self) -> None:
        self.tables: dict[ImportKind, dict[int, dict[str, Any]]] = {k: {} for k in ImportKind}
        self._ids = {k: itertools.count(1) for k in ImportKind}

    def add_customer(self, **row: Any) -> int:
        return self.insert(ImportKind.CUSTOMERS, {"first_name": "", "last_name": "", **row})

    def delete_customer(self, customer_id: int) -> None:
        self.tables[ImportKind.CUSTOMERS].pop(customer_id, None)

    def customer_exists(self, customer_id: Any) -> bool:
        cid = _as_int_id(customer_id)
        return cid is not None and cid in self.tables[ImportKind.CUSTOMERS]

    def insert(self, kind: ImportKind, row: dict[str, Any]) -> int:
        for column in self.REQUIRED_COLUMNS[kind]:
            if row.get(column) is None:
                raise RecordRejectedError(f'null value in column "{column}" of relation "{kind.table}"')
        if kind is ImportKind.SALES:
            cid = _as_int_id(row["customer_id"])
            if not self.customer_exists(cid):
                raise RecordRejectedError(f"customer {row['customer_id']} does not exist")
            row = {**row, "customer_id": cid}
        new_id = next(self._ids[kind])
        self.tables[kind][new_id] = {"id": new_id, **row}
        return new_id

    def fetch_all(self, kind: ImportKind) -> list[dict[str, Any]]:
        return [dict(r) for _, r in sorted(self.tables[kind].items())]


def ensure_schema(cursor: Any) -> None:
    """Create the customers / leads / sales tables if missing."""
    ddl = resources.files("crm_import.db").joinpath("schema.sql").read_text(encoding="utf-8")
    try:
        cursor.execute(ddl)
    except psycopg2.Error as e:
        raise StoreError(str(e).strip()) from e


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    Precedence:
        1. DATABASE_URL / PGDSN environment variables (whole DSN)
        2. ``dsn`` from the config file
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling
           back to the matching config value and then to libpq defaults
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[PostgresStore]:
    """Open an autocommit connection and yield a PostgresStore over it."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreError(f"cannot connect to database: {str(e).strip()}") from e
    conn.autocommit = True
    cur = conn.cursor()
    try:
        yield PostgresStore(cur)
    finally:
        cur.close()
        conn.close()
