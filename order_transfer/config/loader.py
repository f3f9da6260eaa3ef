from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from order_transfer.models.config_models import CANONICAL_HEADERS, DEFAULT_CHUNK_SIZE, TransferSettings

"""Config loader.

Responsibilities:
- Load the YAML config (default config/transfer.yml)
- Validate it against transfer_schema.json (unknown keys rejected)
- Apply defaults and build TransferSettings
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/transfer.yml")
SCHEMA_PATH = Path(__file__).with_name("transfer_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / unreadable, or the data violates it
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


def load_config(path: Path) -> TransferSettings:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    return TransferSettings(
        workbook_directory=data["workbook_directory"],
        chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
        identity_columns=tuple(data.get("identity_columns", ["ORDER ID"])),
        identity_separator=data.get("identity_separator", "_"),
        required_headers=tuple(data.get("required_headers", CANONICAL_HEADERS)),
        date_column=data.get("date_column"),
        status_column=data.get("status_column"),
        validate_headers=data.get("validate_headers", True),
        error_log_directory=data.get("error_log_directory", "./logs"),
        max_concurrent_transfers=data.get("max_concurrent_transfers", 4),
    )
