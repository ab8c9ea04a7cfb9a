"""
Project Scaffolding

Creates plugin.json, the main class and the default resources of a new
project.
"""

import logging
import re
from importlib import resources
from typing import Dict, Optional

from .api_clients import SnapshotRepositoryClient
from .config import FALLBACK_GAME_VERSION, ProjectPaths
from .errors import ConfigurationError, PluggyError
from .project import Compatibility, Project, render_template, save_project

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')
VERSION_PATTERN = re.compile(r'^\d+\.\d+\.\d+(-SNAPSHOT)?$')
MAIN_CLASS_PATTERN = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$')
MAX_DESCRIPTION_LENGTH = 200


def validate_init_options(options: Dict) -> tuple[bool, list[str]]:
    """
    Validate values given to `init`

    Args:
        options: Dict with optional name, version, main, description

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []

    name = options.get('name')
    if name and not NAME_PATTERN.match(name):
        errors.append("Project name can only contain alphanumeric characters and underscores.")

    version = options.get('version')
    if version and not VERSION_PATTERN.match(version):
        errors.append("Project version must be in the format X.Y.Z or X.Y.Z-SNAPSHOT.")

    main = options.get('main')
    if main and not MAIN_CLASS_PATTERN.match(main):
        errors.append("Main class must be a valid Java class name with a package (e.g., com.example.Main).")

    description = options.get('description')
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Project description cannot exceed {MAX_DESCRIPTION_LENGTH} characters.")

    is_valid = len(errors) == 0
    return is_valid, errors


def latest_game_version(snapshots: SnapshotRepositoryClient, platform: str = "paper") -> str:
    """Newest snapshot version of the platform, or the built-in fallback"""
    try:
        return snapshots.latest_platform_version(platform)
    except PluggyError as e:
        logger.debug(f"Could not resolve latest {platform} version, using {FALLBACK_GAME_VERSION}: {e}")
        return FALLBACK_GAME_VERSION


def read_template(name: str) -> str:
    return resources.files(__package__).joinpath("templates", name).read_text(encoding="utf-8")


def init_project(paths: ProjectPaths, options: Optional[Dict] = None,
                 snapshots: Optional[SnapshotRepositoryClient] = None) -> Project:
    """
    Write a new project to paths.root

    Args:
        paths: Layout of the new project
        options: name, version, main, description overrides
        snapshots: Client used to look up the current game version

    Returns:
        The created Project

    Raises:
        ConfigurationError: invalid options
    """
    options = {k: v for k, v in (options or {}).items() if v}
    is_valid, errors = validate_init_options(options)
    if not is_valid:
        raise ConfigurationError("\n".join(errors))

    snapshots = snapshots or SnapshotRepositoryClient()
    game_version = latest_game_version(snapshots)

    project = Project(name=options.get('name') or paths.root.name)
    for key in ('version', 'main', 'description'):
        if key in options:
            setattr(project, key, options[key])
    project.compatibility = Compatibility(versions=[game_version])

    paths.root.mkdir(parents=True, exist_ok=True)
    save_project(project, paths)

    source_file = paths.source_dir.joinpath(*project.package_name.split(".")) / f"{project.class_name}.java"
    source_file.parent.mkdir(parents=True, exist_ok=True)
    source_file.write_text(render_template(read_template("Main.java"), project), encoding="utf-8")

    paths.resources_dir.mkdir(parents=True, exist_ok=True)
    config_file = paths.resources_dir / "config.yml"
    config_file.write_text(render_template(read_template("config.yml"), project), encoding="utf-8")

    logger.info(f'✓ Project "{project.name}" initialized successfully!')
    return project
