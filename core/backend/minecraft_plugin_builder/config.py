"""
Configuration for Minecraft Plugin Builder

Defines registry endpoints, supported platforms and project directory layout.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CLI_NAME = "pluggy"

# API Endpoints
MODRINTH_API = "https://api.modrinth.com/v2"
MAVEN_CENTRAL = "https://repo1.maven.org/maven2/"

# Snapshot repositories for the platform API jars
PLATFORM_REPOSITORIES = {
    "spigot": "https://hub.spigotmc.org/nexus/content/repositories/snapshots/org/spigotmc/spigot-api",
    "paper": "https://repo.papermc.io/repository/maven-snapshots/io/papermc/paper/paper-api",
}

# Only these platforms have a snapshot repository we can build against
PLATFORMS = tuple(PLATFORM_REPOSITORIES)

# Used at init time when the snapshot repository can't be reached
FALLBACK_GAME_VERSION = "1.21.7"

SNAPSHOT_SUFFIX = "R0.1-SNAPSHOT"

# Timeouts (seconds)
HTTP_TIMEOUT = 10
DOWNLOAD_TIMEOUT = 60
TOOL_TIMEOUT = 300

# Project layout
PROJECT_FILE = "plugin.json"
MANIFEST_NAME = "plugin.yml"
ARCHIVE_EXTENSION = "jar"

# Entries never copied out of a dependency archive
DEFAULT_SHADING_EXCLUDE = ["META-INF/**/*"]


@dataclass(frozen=True)
class ProjectPaths:
    """Directory layout of a single project, passed to every component"""

    root: Path
    config_file: Path
    build_dir: Path
    dist_dir: Path
    libs_dir: Path
    source_dir: Path
    resources_dir: Path

    @classmethod
    def for_root(cls, root: Path, config_file: Optional[Path] = None) -> "ProjectPaths":
        """
        Build the default layout under a project root

        Args:
            root: Project root directory
            config_file: Optional override for the project declaration path

        Returns:
            ProjectPaths for the root
        """
        root = Path(root).resolve()
        if config_file is None:
            config_file = root / PROJECT_FILE
        elif not Path(config_file).is_absolute():
            config_file = root / config_file

        return cls(
            root=root,
            config_file=Path(config_file),
            build_dir=root / "bin",
            dist_dir=root / "dist",
            libs_dir=root / "libs",
            source_dir=root / "src",
            resources_dir=root / "resources",
        )

    def resolve(self, path: str) -> Path:
        """Resolve a project-relative path string"""
        return (self.root / Path(path).expanduser()).resolve()

    def relative(self, path: Path) -> str:
        """Express a path relative to the project root where possible"""
        try:
            return Path(os.path.relpath(Path(path).resolve(), self.root)).as_posix()
        except ValueError:
            return Path(path).as_posix()
