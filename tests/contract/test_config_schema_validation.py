from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from crm_import.config.loader import SCHEMA_PATH, ConfigError, load_config

"""Config schema contract: the packaged schema accepts the shipped example and rejects bad input."""

REPO_EXAMPLE = Path(__file__).resolve().parents[2] / "config" / "crm_import.yml"


def _write(tmp: Path, text: str) -> Path:
    p = tmp / "config" / "crm_import.yml"
    p.write_text(text, encoding="utf-8")
    return p


def test_schema_is_valid_draft7():
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    jsonschema.Draft7Validator.check_schema(schema)


def test_shipped_example_config_loads():
    cfg = load_config(REPO_EXAMPLE)
    assert cfg.imports.max_upload_bytes == 5242880


@pytest.mark.parametrize(
    "text",
    [
        "unknown_section: 1\n",
        "import:\n  preview_limit: 0\n",
        "import:\n  preview_limit: many\n",
        "import:\n  default_brand: lingerie\n",
        "import:\n  extra: true\n",
        "database:\n  port: 70000\n",
        "api:\n  allowed_origins: localhost\n",
    ],
)
def test_schema_rejects(temp_workdir: Path, text: str):
    with pytest.raises(ConfigError) as ei:
        load_config(_write(temp_workdir, text))
    assert "config validation failed" in str(ei.value)


def test_null_database_values_allowed(temp_workdir: Path):
    cfg = load_config(_write(temp_workdir, "database:\n  host: null\n  dsn: postgresql://x/y\nimport:\n  error_log_dir: null\n"))
    assert cfg.database.dsn == "postgresql://x/y"
    assert cfg.imports.error_log_dir is None


def test_missing_schema_file(monkeypatch, temp_workdir: Path):
    import crm_import.config.loader as loader

    monkeypatch.setattr(loader, "SCHEMA_PATH", temp_workdir / "missing.json")
    with pytest.raises(ConfigError):
        load_config(_write(temp_workdir, "import: {}\n"))
