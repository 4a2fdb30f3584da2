from __future__ import annotations

from unittest.mock import MagicMock

import psycopg2
import pytest

import crm_import.db.store as store_mod
from crm_import.config.loader import DatabaseConfig
from crm_import.db.insert import RecordRejectedError, StoreError, insert_row
from crm_import.db.store import MemoryStore, PostgresStore, connect, ensure_schema, resolve_dsn
from crm_import.models.import_kind import ImportKind


class DummyCursor:
    def __init__(self, fetchone=(1,), error: Exception | None = None) -> None:
        self.queries: list[tuple[str, list]] = []
        self._fetchone = fetchone
        self.error = error
        self.description = None
        self.rows: list[tuple] = []

    def execute(self, sql, params=None):
        self.queries.append((sql, params))
        if self.error is not None:
            raise self.error

    def fetchone(self):
        return self._fetchone

    def fetchall(self):
        return self.rows


def test_insert_row_builds_parameterized_sql():
    cur = DummyCursor(fetchone=(42,))
    seen = []
    new_id = insert_row(cur, "customers", ["first_name", "last_name"], ["Ana", "Ruiz"], metrics_callback=seen.append)
    assert new_id == 42
    sql, params = cur.queries[0]
    assert sql == 'INSERT INTO customers ("first_name","last_name") VALUES (%s,%s) RETURNING id'
    assert params == ["Ana", "Ruiz"]
    assert seen[0].table == "customers"


def test_insert_row_without_returning():
    cur = DummyCursor()
    assert insert_row(cur, "leads", ["name"], ["A"], returning=None) is None
    assert "RETURNING" not in cur.queries[0][0]


def test_insert_row_length_mismatch():
    with pytest.raises(ValueError):
        insert_row(DummyCursor(), "leads", ["a", "b"], ["x"])


@pytest.mark.parametrize("exc", [psycopg2.IntegrityError("dup"), psycopg2.DataError("bad")])
def test_insert_row_record_errors_are_rejections(exc):
    with pytest.raises(RecordRejectedError):
        insert_row(DummyCursor(error=exc), "customers", ["a"], [1])


def test_insert_row_other_driver_errors_are_store_errors():
    with pytest.raises(StoreError):
        insert_row(DummyCursor(error=psycopg2.OperationalError("gone")), "customers", ["a"], [1])


def test_postgres_store_customer_exists():
    cur = DummyCursor(fetchone=(1,))
    store = PostgresStore(cur)
    assert store.customer_exists("12") is True
    assert cur.queries[-1] == ("SELECT 1 FROM customers WHERE id = %s", [12])
    assert PostgresStore(DummyCursor(fetchone=None)).customer_exists(3) is False
    # non-integral ids never reach the database
    cur = DummyCursor()
    assert PostgresStore(cur).customer_exists("12.5") is False
    assert cur.queries == []


def test_postgres_store_insert_casts_sale_customer_id():
    cur = DummyCursor(fetchone=(7,))
    new_id = PostgresStore(cur).insert(ImportKind.SALES, {"customer_id": "3", "amount": "10", "status": "completed"})
    assert new_id == 7
    assert cur.queries[0][1] == [3, "10", "completed"]


def test_postgres_store_fetch_all():
    cur = DummyCursor()
    cur.description = [("id",), ("name",)]
    cur.rows = [(1, "Ana"), (2, "Eva")]
    assert PostgresStore(cur).fetch_all(ImportKind.CUSTOMERS) == [{"id": 1, "name": "Ana"}, {"id": 2, "name": "Eva"}]
    assert cur.queries[0][0] == "SELECT * FROM customers ORDER BY id"


def test_memory_store_enforces_not_null_and_customer_fk():
    store = MemoryStore()
    with pytest.raises(RecordRejectedError):
        store.insert(ImportKind.CUSTOMERS, {"first_name": "A"})
    with pytest.raises(RecordRejectedError):
        store.insert(ImportKind.SALES, {"customer_id": "5", "amount": "1", "status": "completed"})
    cid = store.add_customer(name="A")
    assert store.insert(ImportKind.SALES, {"customer_id": str(cid), "amount": "1", "status": "completed"}) == 1
    assert store.fetch_all(ImportKind.SALES)[0]["customer_id"] == cid


def test_ensure_schema_runs_packaged_ddl():
    cur = DummyCursor()
    ensure_schema(cur)
    ddl = cur.queries[0][0]
    for table in ("customers", "leads", "sales"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in ddl


def test_resolve_dsn_precedence(monkeypatch):
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    cfg = DatabaseConfig(host="db", port=5433, user="crm", password="pw", database="crm")
    assert resolve_dsn(cfg) == "host=db port=5433 user=crm dbname=crm password=pw"

    monkeypatch.setenv("PGHOST", "envhost")
    assert resolve_dsn(cfg).startswith("host=envhost port=5433")

    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg/db")) == "postgresql://cfg/db"
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/db")
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg/db")) == "postgresql://env/db"


def test_connect_uses_autocommit_and_closes(monkeypatch):
    conn = MagicMock()
    fake_connect = MagicMock(return_value=conn)
    monkeypatch.setattr(store_mod.psycopg2, "connect", fake_connect)
    monkeypatch.setenv("DATABASE_URL", "postgresql://x/y")
    with connect(DatabaseConfig()) as store:
        assert isinstance(store, PostgresStore)
        assert conn.autocommit is True
    fake_connect.assert_called_once_with("postgresql://x/y")
    conn.cursor.return_value.close.assert_called_once()
    conn.close.assert_called_once()


def test_connect_failure_is_store_error(monkeypatch):
    monkeypatch.setattr(store_mod.psycopg2, "connect", MagicMock(side_effect=psycopg2.OperationalError("refused")))
    with pytest.raises(StoreError):
        with connect(DatabaseConfig()):
            pass
