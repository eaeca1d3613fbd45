from __future__ import annotations

import json
import pathlib

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

"""Config schema contract test."""

SCHEMA_PATH = pathlib.Path(__file__).resolve().parents[2] / "src" / "config" / "config_schema.json"


def _schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def _minimal() -> dict:
    return {
        "registry": {"path": "./data/registry.xlsx"},
        "sources_directory": "./data/sources",
        "log": {"path": "./data/transmittal_log.xlsx"},
        "documents": {"directory": "./documents"},
    }


def test_config_schema_valid_full_example():
    config = _minimal()
    config.update({
        "registry": {"path": "./data/registry.xlsx", "sheet": "Sources"},
        "header_row": 5,
        "reference_header": "RFP/ PEF #",
        "field_headers": {"amount": "AMOUNT"},
        "lock_timeout_seconds": 30,
        "id_attempts": 100,
        "verify_unique_on_write": True,
        "log": {
            "backend": "postgres",
            "table": "transmittal_log",
            "primary_columns": 19,
            "pending_marker": "PENDING",
        },
        "letterheads": {"DEFAULT": {"title": "ACME", "address": "Makati", "phone": "123"}},
        "database": {
            "host": "localhost",
            "port": 5432,
            "user": "appuser",
            "password": "secret",
            "database": "appdb",
        },
    })
    jsonschema.validate(config, _schema())


def test_config_schema_minimal_valid_config():
    jsonschema.validate(_minimal(), _schema())


@pytest.mark.parametrize("key", ["registry", "sources_directory", "log", "documents"])
def test_config_schema_missing_required_key(key):
    config = _minimal()
    del config[key]
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


def test_config_schema_rejects_extra_key():
    config = _minimal()
    config["extra_field"] = "not allowed"
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


def test_config_schema_rejects_unknown_field_header():
    config = _minimal()
    config["field_headers"] = {"colour": "COLOUR"}
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


def test_config_schema_rejects_unknown_backend():
    config = _minimal()
    config["log"]["backend"] = "sqlite"
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


def test_config_schema_letterhead_requires_title():
    config = _minimal()
    config["letterheads"] = {"FIN": {"address": "Makati"}}
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


@pytest.mark.parametrize("value", [0, -1])
def test_config_schema_lock_timeout_positive(value):
    config = _minimal()
    config["lock_timeout_seconds"] = value
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())


def test_config_schema_validates_from_sample_yaml(sample_config_yaml: str):
    """The sample config from conftest.py validates against schema."""
    jsonschema.validate(yaml.safe_load(sample_config_yaml), _schema())


def test_config_schema_validates_shipped_example():
    example = SCHEMA_PATH.parents[2] / "config" / "transmittal.example.yml"
    jsonschema.validate(yaml.safe_load(example.read_text(encoding="utf-8")), _schema())
