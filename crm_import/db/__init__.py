from .insert import InsertMetrics, RecordRejectedError, StoreError, insert_row
from .store import MemoryStore, PostgresStore, Store, connect, ensure_schema, resolve_dsn

__all__ = [
    "InsertMetrics",
    "MemoryStore",
    "PostgresStore",
    "RecordRejectedError",
    "Store",
    "StoreError",
    "connect",
    "ensure_schema",
    "insert_row",
    "resolve_dsn",
]
