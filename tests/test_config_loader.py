"""Tests for YAML config loading and validation."""

from pathlib import Path

import pytest

from panelmcp.config.loader import (
    BASE_DEFAULTS,
    get_action_paths,
    get_database_url,
    get_resource_entries,
    load_config,
    validate_config,
)

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "panelmcp.example.yaml"


def test_example_config_is_valid():
    config = load_config(EXAMPLE_CONFIG)

    assert config["server"]["name"] == "Platform Server"
    assert config["documentation"]["project"] == "Workbench"
    assert get_resource_entries(config)[0] == {"key": "users", "entity": "panelmcp.workbench.models:User"}
    assert "panelmcp.workbench.actions:ResetPassword" in get_action_paths(config)


def test_defaults_fill_missing_sections(tmp_path):
    path = tmp_path / "panelmcp.yaml"
    path.write_text("version: 1\nserver:\n  name: Test Server\n")

    config = load_config(path)

    assert config["server"]["name"] == "Test Server"
    assert config["server"]["instructions"] == BASE_DEFAULTS["server"]["instructions"]
    assert config["logging"]["level"] == "INFO"
    assert config["resources"] == []
    assert get_database_url(config) == "sqlite:///panelmcp.db"


def test_log_level_is_case_insensitive():
    config = validate_config({"version": 1, "logging": {"level": "debug"}})

    assert config["logging"]["level"] == "DEBUG"


def test_null_lists_become_empty():
    config = validate_config({"version": 1, "resources": None, "actions": None})

    assert get_resource_entries(config) == []
    assert get_action_paths(config) == []


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


@pytest.mark.parametrize(
    "config, location",
    [
        ({"server": {}}, "<root>"),
        ({"version": 1, "logging": {"level": "LOUD"}}, "logging.level"),
        ({"version": 1, "resources": [{"key": "users"}]}, "resources.0"),
        ({"version": 1, "storage": {"url": ""}}, "storage.url"),
    ],
)
def test_invalid_config_reports_location(config, location):
    with pytest.raises(ValueError, match=f"Invalid config at {location}"):
        validate_config(config)


def test_non_mapping_config_is_rejected(tmp_path):
    path = tmp_path / "panelmcp.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="Config must be a dictionary"):
        load_config(path)
