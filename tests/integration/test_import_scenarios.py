from __future__ import annotations

import json
from pathlib import Path

import pytest

from crm_import.db.store import MemoryStore
from crm_import.logging.error_log import ErrorLogBuffer
from crm_import.models.import_kind import ImportKind
from crm_import.parsing.reader import parse_file
from crm_import.services.orchestrator import commit_file, preview_file, process_client_records
from crm_import.services.validation import ValidationError

"""End-to-end imports through commit_file against the in-memory store."""


def test_two_customers_imported(memory_store: MemoryStore, customers_csv: bytes):
    parsed = parse_file(customers_csv)
    assert parsed.headers == ["firstName", "lastName", "email"]
    assert len(parsed) == 2

    result = commit_file(customers_csv, ImportKind.CUSTOMERS, memory_store, progress=False)
    assert (result.imported_count, result.total_count) == (2, 2)
    rows = memory_store.fetch_all(ImportKind.CUSTOMERS)
    assert rows[0]["email"] == "juan@x.com"
    assert "email" not in rows[1]
    assert rows[1]["name"] == "Maria Lopez"


def test_row_of_empty_fields_blocks_the_batch(memory_store: MemoryStore):
    csv = b"firstName;lastName;email\nJuan;Perez;juan@x.com\n;;\n"
    assert len(parse_file(csv)) == 2
    with pytest.raises(ValidationError) as ei:
        commit_file(csv, ImportKind.CUSTOMERS, memory_store, progress=False)
    assert ei.value.offending_count == 1
    assert memory_store.fetch_all(ImportKind.CUSTOMERS) == []


def test_fully_empty_line_is_skipped(memory_store: MemoryStore):
    csv = b"firstName;lastName\nJuan;Perez\n\nMaria;Lopez\n"
    result = commit_file(csv, ImportKind.LEADS, memory_store, progress=False)
    assert result.total_count == 2


def test_brand_normalized(memory_store: MemoryStore):
    csv = "Nombre;Apellido;Marca\nJuan;Pérez;Sleepwear, BRIDE\n".encode("utf-8")
    preview = preview_file(csv, "customers")
    assert preview.data[0]["brand"] == "Sleepwear, BRIDE"
    commit_file(csv, "customers", memory_store, progress=False)
    assert memory_store.fetch_all(ImportKind.CUSTOMERS)[0]["brand"] == "sleepwear,bride"


def test_missing_customer_skipped_not_raised(memory_store: MemoryStore, tmp_path: Path):
    cid = memory_store.add_customer(name="Ana Ruiz")
    csv = f"customerId,amount,date\n{cid},120.50,2025-02-15\n999,10,\n".encode()
    log = ErrorLogBuffer(tmp_path)
    result = commit_file(csv, ImportKind.SALES, memory_store, filename="ventas.csv", error_log=log, progress=False)
    assert result.imported_count == result.total_count - 1
    sale = memory_store.fetch_all(ImportKind.SALES)[0]
    assert sale["status"] == "completed"
    assert str(sale["created_at"]) == "2025-02-15"
    entry = json.loads(log.file_path.read_text(encoding="utf-8"))
    assert entry["row"] == 2
    assert entry["error_type"] == "CUSTOMER_NOT_FOUND"


def test_client_parsed_records(memory_store: MemoryStore):
    payload = json.dumps(
        {
            "type": "customers",
            "records": [
                {"Nombre completo": "Luz Maria Mar", "Teléfono": "0991234567", "Ciudad": "Quito"},
                {"Nombre completo": "Eva Paz", "Pais telefono": "+593"},
            ],
        }
    )
    result = process_client_records(payload, memory_store, progress=False)
    assert result.complete
    first, second = memory_store.fetch_all(ImportKind.CUSTOMERS)
    assert (first["first_name"], first["last_name"]) == ("Luz", "Maria Mar")
    assert first["phone_number"] == "0991234567"
    assert first["city"] == "Quito"
    assert second["phone_country"] == "+593"
