"""
Dependency Specifiers

A dependency value in plugin.json is one of three kinds, told apart by prefix:

    "7.3.0"                        registry (Modrinth) version
    "maven:net.kyori:adventure-api@4.17.0"  external Maven coordinate
    "file:./libs/x.jar", "./libs/x.jar"     local file
"""

import enum
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, Union

from .errors import ConfigurationError

MAVEN_PREFIX = "maven:"
FILE_PREFIX = "file:"
PATH_PREFIXES = ("/", "./", "../", "~/")


class SpecifierKind(str, enum.Enum):
    REGISTRY = "registry"
    COORDINATE = "coordinate"
    LOCAL = "local"


@dataclass(frozen=True)
class RegistryRef:
    key: str
    version: Optional[str] = None

    kind = SpecifierKind.REGISTRY

    def encode(self) -> str:
        return self.version or ""


@dataclass(frozen=True)
class CoordinateRef:
    key: str
    group: str
    artifact: str
    version: str

    kind = SpecifierKind.COORDINATE

    def encode(self) -> str:
        return f"{MAVEN_PREFIX}{self.group}:{self.artifact}@{self.version}"

    @property
    def filename(self) -> str:
        return f"{self.artifact}-{self.version}.jar"


@dataclass(frozen=True)
class LocalRef:
    key: str
    path: str

    kind = SpecifierKind.LOCAL

    def encode(self) -> str:
        return f"{FILE_PREFIX}{self.path}"


Specifier = Union[RegistryRef, CoordinateRef, LocalRef]


def classify(value: str) -> SpecifierKind:
    """Kind of a specifier string, decided by its prefix alone"""
    if value.startswith(MAVEN_PREFIX):
        return SpecifierKind.COORDINATE
    if value.startswith(FILE_PREFIX) or value.startswith(PATH_PREFIXES):
        return SpecifierKind.LOCAL
    return SpecifierKind.REGISTRY


def parse_coordinate(value: str, key: Optional[str] = None) -> CoordinateRef:
    """
    Parse "maven:group:artifact@version" (also accepts group:artifact:version)

    Raises:
        ConfigurationError: any of the three parts is missing
    """
    body = value[len(MAVEN_PREFIX):] if value.startswith(MAVEN_PREFIX) else value
    parts = [part for chunk in body.split(":") for part in chunk.split("@")]
    if len(parts) != 3 or not all(parts):
        raise ConfigurationError(
            f'Invalid Maven dependency format: {value}. Expected format: "maven:groupId:artifactId@version".'
        )
    group, artifact, version = parts
    return CoordinateRef(key=key or artifact, group=group, artifact=artifact, version=version)


def local_path(value: str) -> str:
    """Path part of a local specifier with any file: prefix removed"""
    if value.startswith(FILE_PREFIX):
        return value[len(FILE_PREFIX):]
    return value


def parse_dependency(key: str, value: str) -> Specifier:
    """
    Parse one entry of the project's dependency map

    Args:
        key: Dependency name (map key)
        value: Version, maven: coordinate or file reference

    Returns:
        The specifier for the entry
    """
    kind = classify(value)
    if kind is SpecifierKind.COORDINATE:
        return parse_coordinate(value, key=key)
    if kind is SpecifierKind.LOCAL:
        path = local_path(value)
        if not path:
            raise ConfigurationError(f"Dependency '{key}' has an empty file path")
        return LocalRef(key=key, path=path)
    return RegistryRef(key=key, version=value.strip() or None)


def parse_install_target(target: str) -> Specifier:
    """
    Parse the argument of `install`

    Accepted shapes:
        worldedit, worldedit@7.3.0
        maven:net.kyori:adventure-api@4.17.0
        ./libs/x.jar, file:./libs/x.jar
        worldedit@file:./libs/worldedit.jar, adventure@maven:net.kyori:adventure-api@4.17.0

    A local file given without a name gets an empty key; the caller names it
    after the plugin.yml inside the archive.
    """
    target = target.strip()
    if not target:
        raise ConfigurationError("No plugin name provided. Please specify a plugin to install.")

    kind = classify(target)
    if kind is SpecifierKind.COORDINATE:
        return parse_coordinate(target)
    if kind is SpecifierKind.LOCAL:
        return LocalRef(key="", path=local_path(target))

    name, _, rest = target.partition("@")
    if not name:
        raise ConfigurationError(f"No plugin name provided in '{target}'.")
    if rest and classify(rest) is not SpecifierKind.REGISTRY:
        return parse_dependency(name, rest)
    return RegistryRef(key=name, version=rest or None)


def default_local_name(path: str) -> str:
    """Fallback dependency name for a local jar (libs/WorldEdit.jar -> WorldEdit)"""
    return PurePosixPath(path.replace("\\", "/")).stem
