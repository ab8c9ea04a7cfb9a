"""Pytest configuration and fixtures."""

import pytest

from minecraft_plugin_builder.config import ProjectPaths
from minecraft_plugin_builder.project import Compatibility, Project, save_project


@pytest.fixture
def project_paths(tmp_path):
    """Layout of an empty project directory."""
    root = tmp_path / "demo"
    root.mkdir()
    return ProjectPaths.for_root(root)


@pytest.fixture
def project(project_paths):
    """A saved project targeting paper 1.21.7."""
    project = Project(
        name="demo",
        main="com.example.demo.Demo",
        compatibility=Compatibility(platforms=["paper", "bukkit"], versions=["1.21.7"]),
    )
    save_project(project, project_paths)
    return project
