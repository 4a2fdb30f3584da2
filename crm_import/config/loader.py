from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/crm_import.yml``)
- Validate it against the packaged JSON schema
- Apply defaults for every omitted key
- Hand back an immutable AppConfig that callers pass into services

There is no module-level config instance. A changed file is picked up with
``reload_config`` and single values are overridden with ``AppConfig.updated``;
both return a new object.
"""

__all__ = [
    "ApiSettings",
    "AppConfig",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "ImportSettings",
    "SCHEMA_PATH",
    "load_config",
    "reload_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/crm_import.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection fallback; environment variables take precedence (see db.store.connect)."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    preview_limit: int = 100  # rows returned by the preview endpoint
    max_upload_bytes: int = 5 * 1024 * 1024
    default_source: str = "import"
    default_brand: str = "sleepwear"
    default_sale_status: str = "completed"
    error_log_dir: str | None = "./logs"  # None disables the skip log file


@dataclass(frozen=True)
class ApiSettings:
    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: tuple[str, ...] = ()


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    imports: ImportSettings = field(default_factory=ImportSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    source_path: Path | None = None  # file this config was read from

    def updated(self, **changes: Any) -> AppConfig:
        """Return a copy with ``imports`` settings overridden, e.g. ``updated(preview_limit=10)``."""
        try:
            return replace(self, imports=replace(self.imports, **changes))
        except TypeError as e:
            raise ConfigError(f"unknown import setting: {e}") from e


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
            (unknown keys, wrong types, out of range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build(data: dict[str, Any], source_path: Path | None) -> AppConfig:
    db_raw = data.get("database") or {}
    imp_raw = data.get("import") or {}
    api_raw = dict(data.get("api") or {})
    if "allowed_origins" in api_raw:
        api_raw["allowed_origins"] = tuple(api_raw["allowed_origins"])
    return AppConfig(
        database=DatabaseConfig(**db_raw),
        imports=ImportSettings(**imp_raw),
        api=ApiSettings(**api_raw),
        source_path=source_path,
    )


def load_config(path: Path | None = None) -> AppConfig:
    """Load config from ``path``; ``None`` yields the built-in defaults."""
    if path is None:
        return AppConfig()
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return _build(data, source_path=path)


def reload_config(config: AppConfig) -> AppConfig:
    """Re-read the file ``config`` came from (defaults stay defaults)."""
    return load_config(config.source_path)
