from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.revenue import DEFAULT_STATUS_LABELS, StatusLabels
from ..services.revenue import MAX_ROWS
from ..storage.store import STORAGE_CAPACITY_BYTES

"""Config loader.

- YAML (``config/dashboard.yml`` by default) validated against the packaged
  ``config_schema.json``
- every key is optional; missing keys fall back to defaults
- a missing file at the default location means "all defaults", a missing file
  that was asked for explicitly is an error
- ``ORDER_REVENUE_STORE`` overrides ``storage_path``
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "STORE_ENV_VAR",
    "ConfigError",
    "DashboardConfig",
    "default_config",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/dashboard.yml")
STORE_ENV_VAR = "ORDER_REVENUE_STORE"

DEFAULT_STORAGE_PATH = "data/datasets.json"
DEFAULT_LOGS_DIRECTORY = "logs"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DashboardConfig:
    storage_path: Path = Path(DEFAULT_STORAGE_PATH)
    logs_directory: Path = Path(DEFAULT_LOGS_DIRECTORY)
    max_rows: int = MAX_ROWS
    storage_capacity_bytes: int = STORAGE_CAPACITY_BYTES
    status_labels: StatusLabels = DEFAULT_STATUS_LABELS
    column_synonyms: dict[str, list[str]] = field(default_factory=dict)  # Field.value -> 追加候補


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: the schema file is missing or unreadable, or the data
            fails validation (unknown keys, wrong types, bad field names)
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


def _apply_env(config: DashboardConfig) -> DashboardConfig:
    override = os.environ.get(STORE_ENV_VAR)
    if not override:
        return config
    return DashboardConfig(
        storage_path=Path(override),
        logs_directory=config.logs_directory,
        max_rows=config.max_rows,
        storage_capacity_bytes=config.storage_capacity_bytes,
        status_labels=config.status_labels,
        column_synonyms=config.column_synonyms,
    )


def default_config() -> DashboardConfig:
    return _apply_env(DashboardConfig())


def load_config(path: Path | None = None) -> DashboardConfig:
    """Load and validate the dashboard config.

    Args:
        path: explicit config file; None means ``DEFAULT_CONFIG_PATH`` if present

    Raises:
        ConfigError: explicit file missing, invalid YAML, or schema violation
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return default_config()
        path = DEFAULT_CONFIG_PATH
    elif not path.exists():
        raise ConfigError(f"config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    labels_raw = data.get("status_labels", {})
    labels = StatusLabels(
        to_ship=labels_raw.get("to_ship", DEFAULT_STATUS_LABELS.to_ship),
        completed=labels_raw.get("completed", DEFAULT_STATUS_LABELS.completed),
        cancelled=labels_raw.get("cancelled", DEFAULT_STATUS_LABELS.cancelled),
    )
    config = DashboardConfig(
        storage_path=Path(data.get("storage_path", DEFAULT_STORAGE_PATH)),
        logs_directory=Path(data.get("logs_directory", DEFAULT_LOGS_DIRECTORY)),
        max_rows=data.get("max_rows", MAX_ROWS),
        storage_capacity_bytes=data.get("storage_capacity_bytes", STORAGE_CAPACITY_BYTES),
        status_labels=labels,
        column_synonyms={k: list(v) for k, v in data.get("column_synonyms", {}).items()},
    )
    return _apply_env(config)
