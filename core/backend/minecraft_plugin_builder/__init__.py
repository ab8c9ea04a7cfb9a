"""
Minecraft Plugin Builder

Scaffolds, builds and manages dependencies of Bukkit/Paper plugin projects,
using Modrinth as the source of plugins.

Version: 0.1.0
"""

__version__ = "0.1.0"
__description__ = "Build and dependency tool for Minecraft server plugins"

from .builder import PackageAssembler
from .config import ProjectPaths
from .errors import PluggyError
from .project import Project, load_project, save_project
from .resolver import DependencyResolver

__all__ = [
    "DependencyResolver",
    "PackageAssembler",
    "PluggyError",
    "Project",
    "ProjectPaths",
    "load_project",
    "save_project",
]
