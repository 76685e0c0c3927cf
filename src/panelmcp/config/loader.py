from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Union

import jsonschema
import yaml

DEFAULT_CONFIG_PATH = Path("config/panelmcp.yaml")
EXAMPLE_CONFIG_PATH = Path("config/panelmcp.example.yaml")

DEFAULT_INSTRUCTIONS = """\
This server provides access to your platform capabilities, mirroring what you can do in the web application.

- CRUD tools (create-resource, read-resource, update-resource, delete-resource) manage records.
- Business action tools execute business logic.
- Read domain://dbml to understand the entities and their relationships.
- Read process://bpmn to understand the sequence of steps for a business task.
"""

BASE_DEFAULTS: Dict[str, Any] = {
    "server": {
        "name": "Platform Server",
        "version": "1.0.0",
        "instructions": DEFAULT_INSTRUCTIONS,
    },
    "storage": {
        "url": "sqlite:///panelmcp.db",
    },
    "logging": {
        "level": "INFO",
    },
    "documentation": {
        "project": "Platform",
        "note": None,
        "bpmn_path": None,
    },
    "resources": [],
    "actions": [],
}

_RESOURCE_ENTRY = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "required": ["entity"],
            "properties": {
                "key": {"type": "string", "minLength": 1},
                "entity": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
    ]
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["version"],
    "properties": {
        "version": {"type": ["integer", "string"]},
        "server": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "version": {"type": "string"},
                "instructions": {"type": "string"},
            },
        },
        "storage": {
            "type": "object",
            "properties": {"url": {"type": "string", "minLength": 1}},
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
            },
        },
        "documentation": {
            "type": "object",
            "properties": {
                "project": {"type": "string"},
                "note": {"type": ["string", "null"]},
                "bpmn_path": {"type": ["string", "null"]},
            },
        },
        "resources": {"type": "array", "items": _RESOURCE_ENTRY},
        "actions": {"type": "array", "items": {"type": "string", "minLength": 1}},
    },
}


def _merge_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing sections and keys from BASE_DEFAULTS."""
    merged = deepcopy(config)
    for section, defaults in BASE_DEFAULTS.items():
        if isinstance(defaults, dict):
            merged[section] = {**defaults, **(merged.get(section) or {})}
        else:
            merged.setdefault(section, deepcopy(defaults))
            if merged[section] is None:
                merged[section] = deepcopy(defaults)
    return merged


def validate_config(config: Any) -> Dict[str, Any]:
    """
    Validate a raw config mapping and apply defaults.

    Raises:
        ValueError: If the structure does not match CONFIG_SCHEMA
    """
    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")
    if isinstance(config.get("logging"), dict) and isinstance(config["logging"].get("level"), str):
        config = {**config, "logging": {**config["logging"], "level": config["logging"]["level"].upper()}}
    try:
        jsonschema.validate(config, CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = ".".join(str(part) for part in e.absolute_path) or "<root>"
        raise ValueError(f"Invalid config at {location}: {e.message}") from e
    return _merge_defaults(config)


def load_config(path: Path | None = None) -> Dict[str, Any]:
    """
    Load the server configuration from YAML.

    Args:
        path: Optional path to the config file. Defaults to config/panelmcp.yaml

    Returns:
        Validated configuration with defaults applied

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config structure is invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f)
    return validate_config(config)


def get_resource_entries(config: Dict[str, Any]) -> List[Union[str, Dict[str, str]]]:
    return list(config.get("resources") or [])


def get_action_paths(config: Dict[str, Any]) -> List[str]:
    return list(config.get("actions") or [])


def get_database_url(config: Dict[str, Any]) -> str:
    return config.get("storage", {}).get("url") or BASE_DEFAULTS["storage"]["url"]
