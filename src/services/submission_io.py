from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.submission import TransmittalSubmission
from .writer import InvalidSubmission

"""Submission file loading for the CLI.

A submission file is YAML (JSON being a subset, .json files load the same
way) validated against submission_schema.json before it becomes a
TransmittalSubmission. Bare YAML dates (``date_transmitted: 2024-01-05``)
are kept as their ISO strings.
"""

SCHEMA_PATH = Path(__file__).parent.parent / "config" / "submission_schema.json"


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, (date, datetime)) else value


def _stringify_dates(data: dict[str, Any]) -> dict[str, Any]:
    out = {k: _iso(v) for k, v in data.items()}
    if isinstance(out.get("items"), list):
        out["items"] = [
            {k: _iso(v) for k, v in item.items()} if isinstance(item, dict) else item
            for item in out["items"]
        ]
    return out


def parse_submission(data: Any) -> TransmittalSubmission:
    if not isinstance(data, dict):
        raise InvalidSubmission("submission must be a mapping")
    data = _stringify_dates(data)
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    try:
        jsonschema.validate(data, schema)
    except ValidationError as e:
        raise InvalidSubmission(f"submission validation failed: {e.message}") from e
    return TransmittalSubmission.from_dict(data)


def load_submission(path: Path) -> TransmittalSubmission:
    if not path.exists():
        raise InvalidSubmission(f"submission file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InvalidSubmission(f"invalid submission file: {e}") from e
    return parse_submission(data)
