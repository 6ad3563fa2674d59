"""Configuration loading utilities for ownerstore."""

import json
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from ownerstore.config.schema import Config

_CAMEL_BOUNDARY = re.compile(r"(?<=.)(?=[A-Z])")


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".ownerstore" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            data = _migrate_config(data)
            # Constructed, not model_validate()d, so the env source still applies.
            return Config(**convert_keys(data))
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}; using default configuration")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def _migrate_config(data: Any) -> dict:
    """Fill defaults for sections older config files lack."""
    if not isinstance(data, dict):
        return {}

    storage = data.setdefault("storage", {})
    if isinstance(storage, dict):
        # Early files used a flat "dataDir" at the top level.
        if "dataDir" in data and "dataDir" not in storage:
            storage["dataDir"] = data.pop("dataDir")
        storage.setdefault("backend", "file")

    audit = data.setdefault("audit", {})
    if isinstance(audit, dict):
        audit.setdefault("enabled", True)
        audit.setdefault("logPath", "")

    api = data.setdefault("api", {})
    if isinstance(api, dict):
        api.setdefault("maskNotSet", False)
    return data


def _rename_keys(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, dict):
        return {rename(str(k)): _rename_keys(v, rename) for k, v in data.items()}
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    return data


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    return _rename_keys(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)
