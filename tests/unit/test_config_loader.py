"""Tests for settings loading."""

import logging

import pytest

from minecraft_plugin_builder.config import PLATFORM_REPOSITORIES
from minecraft_plugin_builder.config_loader import (
    default_settings,
    load_settings,
    substitute_env_vars,
    validate_settings,
)
from minecraft_plugin_builder.errors import ConfigurationError


class TestLoadSettings:
    """Test reading settings files."""

    def test_defaults_when_no_file_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr("minecraft_plugin_builder.config_loader.get_config_paths",
                            lambda: [tmp_path / "missing.yaml"])
        assert load_settings() == default_settings()

    def test_explicit_file_overrides(self, tmp_path):
        settings_file = tmp_path / "pluggy.yaml"
        settings_file.write_text(
            "http_timeout: 5\n"
            "version_policy: semver\n"
            "strict_manifest: true\n"
            "platform_repositories:\n"
            "  folia: https://repo.example.com/folia-api\n"
        )
        settings = load_settings(settings_file)

        assert settings["http_timeout"] == 5
        assert settings["version_policy"] == "semver"
        assert settings["strict_manifest"] is True
        assert settings["platform_repositories"]["paper"] == PLATFORM_REPOSITORIES["paper"]
        assert settings["platform_repositories"]["folia"] == "https://repo.example.com/folia-api"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        settings_file = tmp_path / "pluggy.yaml"
        settings_file.write_text("http_timeout: [1\n")
        with pytest.raises(ConfigurationError, match="Error parsing"):
            load_settings(settings_file)

    def test_invalid_values(self, tmp_path):
        settings_file = tmp_path / "pluggy.yaml"
        settings_file.write_text("version_policy: newest\ntool_timeout: -1\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(settings_file)
        assert "version_policy" in str(exc_info.value)
        assert "tool_timeout" in str(exc_info.value)

    def test_unknown_keys_warn(self, tmp_path, caplog):
        settings_file = tmp_path / "pluggy.yaml"
        settings_file.write_text("colour: blue\n")
        with caplog.at_level(logging.WARNING):
            settings = load_settings(settings_file)
        assert "colour" not in settings
        assert "Ignoring unknown setting 'colour'" in caplog.text

    def test_environment_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PLUGGY_MODRINTH", "https://staging-api.modrinth.com/v2")
        settings_file = tmp_path / "pluggy.yaml"
        settings_file.write_text(
            "modrinth_api: ${PLUGGY_MODRINTH}\n"
            "download_timeout: ${PLUGGY_DOWNLOAD_TIMEOUT:-90}\n"
        )
        settings = load_settings(settings_file)

        assert settings["modrinth_api"] == "https://staging-api.modrinth.com/v2"
        assert settings["download_timeout"] == 90.0


class TestValidateSettings:
    def test_defaults_are_valid(self):
        assert validate_settings(default_settings()) == (True, [])

    def test_bad_url(self):
        settings = default_settings()
        settings["maven_central"] = "repo1.maven.org"
        is_valid, errors = validate_settings(settings)
        assert not is_valid
        assert errors == ["'maven_central' must be an http(s) URL"]

    def test_substitute_env_vars_nested(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR", raising=False)
        assert substitute_env_vars({"a": ["${UNSET_VAR:-x}"], "b": 1}) == {"a": ["x"], "b": 1}
