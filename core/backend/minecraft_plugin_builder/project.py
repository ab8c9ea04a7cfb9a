"""
Project Declaration

The plugin.json model, its persistence and the template placeholders derived
from it.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import CLI_NAME, PLATFORMS, ProjectPaths
from .errors import ConfigurationError
from .version_policy import VersionPolicy, get_policy

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "A Minecraft plugin project using Modrinth."
DEFAULT_MAIN = "com.example.Main"
DEFAULT_VERSION = "0.1.0"
DEFAULT_PLATFORMS = ["paper", "bukkit"]
DEFAULT_RESOURCES = {"config.yml": "./resources/config.yml"}

# Keys written in this order; anything else in the file is kept after them
_KNOWN_KEYS = (
    "name", "version", "main", "description", "authors", "resources",
    "dependencies", "shading", "compatibility", "registries",
)


@dataclass
class Shading:
    """Which entries of a dependency archive are copied into the build"""

    include: Optional[List[str]] = None
    exclude: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "Shading":
        if not isinstance(data, dict):
            raise ConfigurationError(f"Shading rule must be an object, got: {data!r}")
        return cls(include=_string_list(data.get("include"), "shading.include"),
                   exclude=_string_list(data.get("exclude"), "shading.exclude"))

    def to_dict(self) -> Dict:
        data = {}
        if self.include is not None:
            data["include"] = list(self.include)
        if self.exclude is not None:
            data["exclude"] = list(self.exclude)
        return data


@dataclass
class Compatibility:
    platforms: List[str] = field(default_factory=lambda: list(DEFAULT_PLATFORMS))
    versions: List[str] = field(default_factory=list)


@dataclass
class Project:
    """A plugin project as declared in plugin.json"""

    name: str
    version: str = DEFAULT_VERSION
    main: str = DEFAULT_MAIN
    description: str = DEFAULT_DESCRIPTION
    authors: Optional[List[str]] = None
    resources: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RESOURCES))
    dependencies: Dict[str, str] = field(default_factory=dict)
    shading: Optional[Dict[str, Shading]] = None
    compatibility: Compatibility = field(default_factory=Compatibility)
    registries: Optional[List[str]] = None
    extra: Dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> "Project":
        """
        Build a Project from the decoded plugin.json document

        Raises:
            ConfigurationError: required fields missing or of the wrong type
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Project file must contain a JSON object")

        for key in ("name", "version", "main"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ConfigurationError(f"Project file is missing required field '{key}'")

        compatibility = data.get("compatibility") or {}
        if not isinstance(compatibility, dict):
            raise ConfigurationError("'compatibility' must be an object")

        dependencies = data.get("dependencies") or {}
        if not isinstance(dependencies, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in dependencies.items()
        ):
            raise ConfigurationError("'dependencies' must map names to version strings")

        resources = data.get("resources") or {}
        if not isinstance(resources, dict):
            raise ConfigurationError("'resources' must map output paths to source paths")

        shading = data.get("shading")
        if shading is not None:
            if not isinstance(shading, dict):
                raise ConfigurationError("'shading' must map dependency names to rules")
            shading = {key: Shading.from_dict(rule) for key, rule in shading.items()}

        return cls(
            name=data["name"],
            version=data["version"],
            main=data["main"],
            description=data.get("description") or "",
            authors=_string_list(data.get("authors"), "authors"),
            resources=dict(resources),
            dependencies=dict(dependencies),
            shading=shading,
            compatibility=Compatibility(
                platforms=_string_list(compatibility.get("platforms"), "compatibility.platforms") or [],
                versions=_string_list(compatibility.get("versions"), "compatibility.versions") or [],
            ),
            registries=_string_list(data.get("registries"), "registries"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict:
        data = {
            "name": self.name,
            "version": self.version,
            "main": self.main,
            "description": self.description,
        }
        if self.authors is not None:
            data["authors"] = list(self.authors)
        data["resources"] = dict(self.resources)
        data["dependencies"] = dict(self.dependencies)
        if self.shading is not None:
            data["shading"] = {key: rule.to_dict() for key, rule in self.shading.items()}
        data["compatibility"] = {
            "versions": list(self.compatibility.versions),
            "platforms": list(self.compatibility.platforms),
        }
        if self.registries is not None:
            data["registries"] = list(self.registries)
        data.update(self.extra)
        return data

    @property
    def class_name(self) -> str:
        """Short name of the main class (com.example.Main -> Main)"""
        if not self.main:
            return "Main"
        return self.main.split(".")[-1]

    @property
    def package_name(self) -> str:
        """Package of the main class (com.example.Main -> com.example)"""
        if not self.main:
            return "com.example"
        return ".".join(self.main.split(".")[:-1])

    def shading_for(self, key: str) -> Optional[Shading]:
        if not self.shading:
            return None
        return self.shading.get(key)

    def active_platform(self, policy: Optional[VersionPolicy] = None) -> Tuple[str, str]:
        """
        Pick the platform and game version the project is built against

        The platform is the first listed one we have a snapshot repository
        for; the version is chosen from the compatibility list by the policy.

        Returns:
            Tuple of (platform, game_version)

        Raises:
            ConfigurationError: no resolvable platform or no game versions listed
        """
        platform = next(
            (p for p in self.compatibility.platforms if p in PLATFORMS), None
        )
        if not platform:
            raise ConfigurationError(
                "No active platform found in project compatibility settings. "
                f"Please ensure your project is compatible with at least one of: {', '.join(PLATFORMS)}."
            )

        if not self.compatibility.versions:
            raise ConfigurationError(
                "No game versions listed in project compatibility settings."
            )

        policy = policy or get_policy()
        return platform, policy.choose(self.compatibility.versions)


def render_template(content: str, project: Project) -> str:
    """Replace the $__PROJECT_*__$ placeholders with project values"""
    replacements = {
        "$__PROJECT_NAME__$": project.name,
        "$__PROJECT_VERSION__$": project.version,
        "$__PROJECT_MAIN_CLASS__$": project.class_name,
        "$__PROJECT_DESCRIPTION__$": project.description,
        "$__PROJECT_PACKAGE_NAME__$": project.package_name,
    }
    for placeholder, value in replacements.items():
        content = content.replace(placeholder, value or "")
    return content


def load_project(paths: ProjectPaths) -> Project:
    """
    Load plugin.json for the project

    Raises:
        ConfigurationError: file missing or not valid JSON
    """
    if not paths.config_file.exists():
        raise ConfigurationError(
            f"Project file not found at {paths.config_file}. Please run {CLI_NAME} init first."
        )

    try:
        with open(paths.config_file, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Project file {paths.config_file} is not valid JSON: {e}") from e

    return Project.from_dict(data)


def save_project(project: Project, paths: ProjectPaths) -> None:
    """Rewrite plugin.json wholesale"""
    paths.config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(paths.config_file, "w", encoding="utf-8") as f:
        json.dump(project.to_dict(), f, indent=2)
    logger.debug(f"Project saved: {paths.config_file}")


def _string_list(value, name: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{name}' must be a list of strings")
    return list(value)
