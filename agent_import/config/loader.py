from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError as SchemaValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MOBILE_PATTERN,
    MAX_BATCH_SIZE,
    MAX_UPLOAD_BYTES,
    DatabaseConfig,
    ImportConfig,
)

"""Config loader for the bulk agent import tool.

Responsibilities:
- Load YAML config/import.yml
- Validate against config_schema.json (unknown keys rejected)
- Apply defaults for every optional key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data does not conform
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except SchemaValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def config_from_mapping(data: dict[str, Any]) -> ImportConfig:
    _validate_config_schema(data)

    max_batch = data.get("max_batch_size", MAX_BATCH_SIZE)
    batch_size = data.get("batch_size", DEFAULT_BATCH_SIZE)
    if batch_size > max_batch:
        raise ConfigError(f"batch_size {batch_size} exceeds max_batch_size {max_batch}")

    pattern = data.get("mobile_number_pattern", DEFAULT_MOBILE_PATTERN)
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"invalid mobile_number_pattern: {e}") from e

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        batch_size=batch_size,
        max_batch_size=max_batch,
        max_upload_bytes=data.get("max_upload_bytes", MAX_UPLOAD_BYTES),
        mobile_number_pattern=pattern,
        code_allocation=data.get("code_allocation", "counter"),
        error_log_dir=data.get("error_log_dir", "logs"),
        database=db,
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    return config_from_mapping(data)
