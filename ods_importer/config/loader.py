from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ods_importer.models.config_models import DatabaseConfig, ImportConfig, LoadOptions

"""Config loader.

Responsibilities:
- Load the YAML config (default: config/import.yml)
- Validate it against the bundled JSON schema (config_schema.json)
- Apply defaults for every missing key
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
    "build_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / invalid, or the data violates it
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


def build_config(data: dict[str, Any]) -> ImportConfig:
    """Validate a raw mapping and turn it into an ImportConfig."""
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    defaults = LoadOptions()
    imp = data.get("import") or {}
    sentinels = frozenset(s.strip().upper() for s in imp.get("null_sentinels", []))
    load = LoadOptions(
        mode=imp.get("mode", defaults.mode),
        page_size=imp.get("page_size", defaults.page_size),
        skip_empty_rows=imp.get("skip_empty_rows", defaults.skip_empty_rows),
        null_sentinels=sentinels,
        progress_every=imp.get("progress_every", defaults.progress_every),
        chunk_size=imp.get("chunk_size", defaults.chunk_size),
    )
    return ImportConfig(database=db, load=load)


def load_config(path: Path | None = None) -> ImportConfig:
    """Load the config file.

    With ``path=None`` the default location is used and a missing file simply
    means "all defaults". An explicitly given path must exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return ImportConfig()
        path = DEFAULT_CONFIG_PATH
    elif not path.exists():
        raise ConfigError(f"config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    return build_config(data)
