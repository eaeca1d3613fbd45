from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from src.models.config_models import (
    DEFAULT_FIELD_HEADERS,
    AppConfig,
    DatabaseConfig,
    LogConfig,
    RegistryConfig,
)
from src.models.letterhead import Letterhead

"""Config loader.

Responsibilities:
- Load the YAML config (default config/transmittal.yml)
- Validate it against config_schema.json (unknown keys are rejected)
- Apply defaults and build the frozen AppConfig
"""

DEFAULT_CONFIG_PATH = Path("config/transmittal.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
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


def _build_log_config(raw: dict[str, Any]) -> LogConfig:
    backend = raw.get("backend", "excel")
    path = raw.get("path")
    if backend == "excel" and not path:
        raise ConfigError("config validation failed: log.path is required for the excel backend")
    defaults = LogConfig()
    return LogConfig(
        backend=backend,
        path=Path(path) if path else None,
        sheet=raw.get("sheet", defaults.sheet),
        table=raw.get("table", defaults.table),
        primary_columns=raw.get("primary_columns", defaults.primary_columns),
        pending_marker=raw.get("pending_marker", defaults.pending_marker),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    registry_raw = data["registry"]
    field_headers = dict(DEFAULT_FIELD_HEADERS)
    field_headers.update(data.get("field_headers") or {})
    letterheads = {
        str(key).strip().upper(): Letterhead(
            title=value["title"],
            address=value.get("address", ""),
            phone=value.get("phone", ""),
        )
        for key, value in (data.get("letterheads") or {}).items()
    }
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    defaults = AppConfig(
        registry=RegistryConfig(path=Path(".")),
        sources_directory=Path("."),
        log=LogConfig(),
        documents_directory=Path("."),
    )
    return AppConfig(
        registry=RegistryConfig(
            path=Path(registry_raw["path"]),
            sheet=registry_raw.get("sheet", 0),
        ),
        sources_directory=Path(data["sources_directory"]),
        log=_build_log_config(data["log"]),
        documents_directory=Path(data["documents"]["directory"]),
        header_row=data.get("header_row", defaults.header_row),
        reference_header=data.get("reference_header", defaults.reference_header),
        field_headers=field_headers,
        lock_timeout_seconds=float(data.get("lock_timeout_seconds", defaults.lock_timeout_seconds)),
        id_attempts=data.get("id_attempts", defaults.id_attempts),
        verify_unique_on_write=data.get("verify_unique_on_write", defaults.verify_unique_on_write),
        letterheads=letterheads,
        database=db,
    )
