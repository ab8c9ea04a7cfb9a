"""Tests for project scaffolding."""

import json
from unittest.mock import MagicMock

import pytest

from minecraft_plugin_builder.config import FALLBACK_GAME_VERSION, ProjectPaths
from minecraft_plugin_builder.errors import ConfigurationError, NetworkError
from minecraft_plugin_builder.scaffold import init_project, latest_game_version, validate_init_options


class TestValidateInitOptions:
    """Test validation of init values."""

    def test_valid(self):
        assert validate_init_options({
            "name": "my_plugin", "version": "1.0.0-SNAPSHOT", "main": "com.example.Main", "description": "x",
        }) == (True, [])

    def test_missing_values_are_not_errors(self):
        assert validate_init_options({}) == (True, [])

    @pytest.mark.parametrize("options,message", [
        ({"name": "my-plugin"}, "alphanumeric"),
        ({"version": "1.0"}, "X.Y.Z"),
        ({"main": "Main"}, "with a package"),
        ({"main": "com.example.1Main"}, "valid Java class"),
        ({"description": "x" * 201}, "200 characters"),
    ])
    def test_invalid(self, options, message):
        is_valid, errors = validate_init_options(options)
        assert not is_valid
        assert len(errors) == 1
        assert message in errors[0]


class TestLatestGameVersion:
    def test_from_snapshot_repository(self):
        snapshots = MagicMock()
        snapshots.latest_platform_version.return_value = "1.21.8"
        assert latest_game_version(snapshots) == "1.21.8"
        snapshots.latest_platform_version.assert_called_once_with("paper")

    def test_falls_back_when_unreachable(self):
        snapshots = MagicMock()
        snapshots.latest_platform_version.side_effect = NetworkError("offline")
        assert latest_game_version(snapshots) == FALLBACK_GAME_VERSION == "1.21.7"


class TestInitProject:
    """Test writing a new project."""

    @pytest.fixture
    def snapshots(self):
        snapshots = MagicMock()
        snapshots.latest_platform_version.return_value = "1.21.8"
        return snapshots

    def test_writes_declaration_source_and_resources(self, tmp_path, snapshots):
        paths = ProjectPaths.for_root(tmp_path / "my_plugin")
        project = init_project(paths, {"main": "org.acme.plugin.AcmePlugin", "description": "Acme"}, snapshots)

        assert project.name == "my_plugin"
        data = json.loads(paths.config_file.read_text())
        assert data["name"] == "my_plugin"
        assert data["version"] == "0.1.0"
        assert data["main"] == "org.acme.plugin.AcmePlugin"
        assert data["compatibility"] == {"versions": ["1.21.8"], "platforms": ["paper", "bukkit"]}
        assert data["resources"] == {"config.yml": "./resources/config.yml"}

        source = (paths.source_dir / "org" / "acme" / "plugin" / "AcmePlugin.java").read_text()
        assert "package org.acme.plugin;" in source
        assert "public class AcmePlugin extends JavaPlugin" in source
        assert "$__" not in source

        config = (paths.resources_dir / "config.yml").read_text()
        assert "my_plugin" in config
        assert "Acme" in config

    def test_explicit_name(self, tmp_path, snapshots):
        paths = ProjectPaths.for_root(tmp_path)
        assert init_project(paths, {"name": "other"}, snapshots).name == "other"

    def test_invalid_options_write_nothing(self, tmp_path, snapshots):
        paths = ProjectPaths.for_root(tmp_path / "bad")
        with pytest.raises(ConfigurationError, match="X.Y.Z"):
            init_project(paths, {"version": "one"}, snapshots)
        assert not paths.root.exists()
