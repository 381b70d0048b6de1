from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ConfigError
from ..models.config_models import KEY_POSITIONAL, DatabaseConfig, ReportConfig, SectionConfig

"""Config loader.

Responsibilities:
- Load YAML config/report.yml
- Validate against the bundled JSON schema (report_schema.json)
- Reject configurations whose positional row labels cannot key documents
- Apply defaults (key=positional, technician=False, required=False)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "parse_config",
]

SCHEMA_PATH = Path(__file__).with_name("report_schema.json")
DEFAULT_CONFIG_PATH = Path("config/report.yml")


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
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


def _check_sections(sections: list[SectionConfig], notes_collection: str) -> None:
    seen: set[str] = set()
    for s in sections:
        if s.collection in seen or s.collection == notes_collection:
            raise ConfigError(f"duplicate collection: {s.collection}")
        seen.add(s.collection)
        # 位置キーの場合、行ラベルがそのままドキュメント ID になるため重複不可
        if s.key == KEY_POSITIONAL and len(set(s.row_labels)) != len(s.row_labels):
            dupes = sorted({label for label in s.row_labels if s.row_labels.count(label) > 1})
            raise ConfigError(f"section '{s.collection}' has duplicate row labels: {dupes}")


def parse_config(data: dict[str, Any]) -> ReportConfig:
    """Build a ReportConfig from already-parsed YAML data."""
    _validate_config_schema(data)

    sections = [
        SectionConfig(
            collection=raw["collection"],
            title=raw["title"],
            row_labels=tuple(raw["row_labels"]),
            column_labels=tuple(raw["column_labels"]),
            key=raw.get("key", KEY_POSITIONAL),
            technician=bool(raw.get("technician", False)),
            required=bool(raw.get("required", False)),
            header=raw.get("header", ""),
        )
        for raw in data["sections"]
    ]
    _check_sections(sections, data["notes_collection"])

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        table=db_raw.get("table", "report_documents"),
    )
    return ReportConfig(
        plant_name=data["plant_name"],
        sections=tuple(sections),
        notes_collection=data["notes_collection"],
        database=db,
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ReportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")
    return parse_config(data)
