# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from crm_import.db.store import MemoryStore
from crm_import.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stdout at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: crm
  password: secret
  database: crm
import:
  preview_limit: 100
  max_upload_bytes: 5242880
  default_source: import
  default_brand: sleepwear
  default_sale_status: completed
  error_log_dir: ./logs
api:
  host: 127.0.0.1
  port: 8000
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "crm_import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def customers_csv() -> bytes:
    return "firstName;lastName;email\nJuan;Perez;juan@x.com\nMaria;Lopez;\n".encode("utf-8")


@pytest.fixture()
def make_xlsx() -> Callable[..., bytes]:
    """Build .xlsx bytes from rows (first row is the header)."""

    def _make(rows: list[list[object]], sheet_name: str = "Hoja1", extra_sheets: dict | None = None) -> bytes:
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
            for name, other in (extra_sheets or {}).items():
                pd.DataFrame(other).to_excel(writer, sheet_name=name, header=False, index=False)
        return buf.getvalue()

    return _make
