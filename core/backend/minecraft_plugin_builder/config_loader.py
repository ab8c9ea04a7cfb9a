"""
Settings Loader

Loads and validates tool settings from YAML files.
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional

import yaml

from .config import (
    CLI_NAME,
    DOWNLOAD_TIMEOUT,
    HTTP_TIMEOUT,
    MAVEN_CENTRAL,
    MODRINTH_API,
    PLATFORM_REPOSITORIES,
    TOOL_TIMEOUT,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    'modrinth_api': MODRINTH_API,
    'maven_central': MAVEN_CENTRAL,
    'platform_repositories': dict(PLATFORM_REPOSITORIES),
    'http_timeout': HTTP_TIMEOUT,
    'download_timeout': DOWNLOAD_TIMEOUT,
    'tool_timeout': TOOL_TIMEOUT,
    'version_policy': 'similarity',
    'strict_manifest': False,
    'log_file': None,
}

VERSION_POLICIES = ('similarity', 'medoid', 'semver')


def default_settings() -> Dict:
    """Fresh copy of the built-in settings"""
    return copy.deepcopy(DEFAULT_SETTINGS)


def get_config_paths() -> list[Path]:
    """
    Get list of settings file paths to check in priority order

    Returns:
        List of paths to check (first found wins)
    """
    paths = []

    # 1. User config directory
    paths.append(Path.home() / ".config" / CLI_NAME / "config.yaml")

    # 2. Current working directory
    paths.append(Path.cwd() / f"{CLI_NAME}.yaml")

    return paths


def load_settings(config_path: Optional[Path] = None) -> Dict:
    """
    Load settings from YAML file

    Args:
        config_path: Optional explicit path to settings file

    Returns:
        Settings dict with registry URLs, timeouts and policies

    Raises:
        ConfigurationError: explicit file missing, unreadable YAML or invalid values
    """
    settings = default_settings()

    if config_path:
        if not Path(config_path).exists():
            raise ConfigurationError(f"Settings file not found: {config_path}")
        config_files = [Path(config_path)]
    else:
        config_files = get_config_paths()

    loaded_from = None
    for path in config_files:
        if path.exists():
            loaded_from = path
            break

    if not loaded_from:
        logger.debug("No settings file found, using defaults")
        return settings

    logger.debug(f"Loading settings from: {loaded_from}")

    try:
        with open(loaded_from, 'r') as f:
            user_settings = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing settings file {loaded_from}: {e}") from e

    if not user_settings:
        logger.warning(f"Settings file {loaded_from} is empty")
        return settings

    if not isinstance(user_settings, dict):
        raise ConfigurationError(f"Settings file {loaded_from} must contain a mapping")

    # Process environment variable substitution
    user_settings = substitute_env_vars(user_settings)

    for key, value in user_settings.items():
        if key not in settings:
            logger.warning(f"Ignoring unknown setting '{key}' in {loaded_from}")
            continue
        if key == 'platform_repositories' and isinstance(value, dict):
            settings[key].update(value)
        else:
            settings[key] = value

    is_valid, errors = validate_settings(settings)
    if not is_valid:
        raise ConfigurationError(
            f"Invalid settings in {loaded_from}:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    return settings


def substitute_env_vars(config: Dict) -> Dict:
    """
    Substitute environment variables in config values

    Handles patterns like:
    - ${ENV_VAR}
    - ${ENV_VAR:-default_value}

    Args:
        config: Configuration dict

    Returns:
        Config with environment variables substituted
    """
    pattern = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}')

    def replacer(match):
        var_name = match.group(1)
        default_value = match.group(2) or ""
        return os.environ.get(var_name, default_value)

    def substitute_value(value):
        if isinstance(value, str):
            return pattern.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: substitute_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [substitute_value(item) for item in value]
        else:
            return value

    return substitute_value(config)


def validate_settings(settings: Dict) -> tuple[bool, list[str]]:
    """
    Validate settings structure

    Args:
        settings: Settings dict to validate

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []

    for key in ('modrinth_api', 'maven_central'):
        value = settings.get(key)
        if not isinstance(value, str) or not value.startswith(('http://', 'https://')):
            errors.append(f"'{key}' must be an http(s) URL")

    repositories = settings.get('platform_repositories')
    if not isinstance(repositories, dict):
        errors.append("'platform_repositories' must map platform names to URLs")

    for key in ('http_timeout', 'download_timeout', 'tool_timeout'):
        value = settings.get(key)
        if isinstance(value, str):
            try:
                value = float(value)
                settings[key] = value
            except ValueError:
                pass
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors.append(f"'{key}' must be a positive number of seconds")

    if settings.get('version_policy') not in VERSION_POLICIES:
        errors.append(
            f"'version_policy' must be one of: {', '.join(VERSION_POLICIES)}"
        )

    if not isinstance(settings.get('strict_manifest'), bool):
        errors.append("'strict_manifest' must be true or false")

    is_valid = len(errors) == 0
    return is_valid, errors
