"""Tests for dependency resolution and installation."""

import json
import logging

import pytest

from helpers import (
    FakeSession,
    FakeResponse,
    make_jar,
    modrinth_routes,
    modrinth_version,
    plugin_jar_bytes,
    snapshot_routes,
)
from minecraft_plugin_builder.api_clients import MavenClient, ModrinthAPIClient, SnapshotRepositoryClient
from minecraft_plugin_builder.config import MAVEN_CENTRAL
from minecraft_plugin_builder.errors import ArtifactError, ConfigurationError, ResolutionError
from minecraft_plugin_builder.project import Shading, load_project
from minecraft_plugin_builder.resolver import DependencyResolver, read_plugin_name
from minecraft_plugin_builder.specifiers import CoordinateRef, LocalRef, RegistryRef

ADVENTURE_PATH = "net/kyori/adventure-api/4.17.0/adventure-api-4.17.0.jar"


@pytest.fixture
def session(tmp_path):
    """Routes for the paper 1.21.7 snapshot, two Modrinth projects and one Maven artifact."""
    routes = snapshot_routes("1.21.7")
    routes.update(modrinth_routes("libx", [
        modrinth_version("3.0-beta", version_type="beta"),
        modrinth_version("2.0"),
        modrinth_version("1.0", game_versions=["1.20.4"]),
    ], jar_bytes=plugin_jar_bytes(tmp_path, "LibX")))
    routes.update(modrinth_routes("liba", [modrinth_version("1.0", slug="liba")],
                                  jar_bytes=plugin_jar_bytes(tmp_path, "LibA")))
    routes[f"{MAVEN_CENTRAL}{ADVENTURE_PATH}"] = FakeResponse(content=b"adventure")
    return FakeSession(routes)


@pytest.fixture
def resolver(project, project_paths, session):
    return DependencyResolver(
        project,
        project_paths,
        modrinth=ModrinthAPIClient(session=session),
        snapshots=SnapshotRepositoryClient(session=session),
        maven=MavenClient(session=session),
    )


class TestSelectVersion:
    """Test picking a Modrinth version."""

    @pytest.fixture
    def libx(self, resolver):
        return resolver.modrinth.get_project("libx")

    def test_first_compatible_release(self, resolver, libx):
        selection = resolver.select_version(libx)
        assert selection.version.version_number == "2.0"
        assert selection.game_version == "1.21.7"
        assert selection.compatible

    def test_beta_allowed_when_asked(self, resolver, libx):
        assert resolver.select_version(libx, include_beta=True).version.version_number == "3.0-beta"

    def test_pinned_beta_is_accepted(self, resolver, libx):
        assert resolver.select_version(libx, "3.0-beta", pinned=True).version.version_number == "3.0-beta"

    def test_incompatible_requested_version(self, resolver, libx):
        with pytest.raises(ResolutionError, match="No compatible version"):
            resolver.select_version(libx, "1.0")

    def test_force_accepts_incompatible_with_warning(self, resolver, libx, caplog):
        with caplog.at_level(logging.WARNING):
            selection = resolver.select_version(libx, "1.0", force=True)
        assert selection.version.version_number == "1.0"
        assert not selection.compatible
        assert "may not be compatible" in caplog.text

    def test_unknown_requested_version(self, resolver, libx):
        with pytest.raises(ResolutionError, match="Available versions: 3.0-beta, 2.0, 1.0"):
            resolver.select_version(libx, "9.9")

    def test_platform_must_match_loaders(self, resolver, libx):
        resolver.project.compatibility.platforms = ["fabric"]
        with pytest.raises(ResolutionError):
            resolver.select_version(libx)


class TestInstallDependencies:
    """Test materializing the declared dependency map."""

    def test_installs_platform_and_dependencies(self, resolver, project, project_paths):
        project.dependencies["libx"] = "2.0"
        result = resolver.install_dependencies()

        libs = project_paths.libs_dir
        assert result.platform.path == libs / "paper-1.21.7.jar"
        assert (libs / "paper-1.21.7.jar").read_bytes() == b"platform-jar"
        assert [a.path for a in result.artifacts] == [libs / "libx-2.0.jar"]
        assert read_plugin_name(libs / "libx-2.0.jar") == "LibX"
        assert result.classpath == [libs / "paper-1.21.7.jar", libs / "libx-2.0.jar"]

    def test_second_pass_is_idempotent(self, resolver, project, session):
        project.dependencies["libx"] = "2.0"
        first = resolver.install_dependencies()
        calls = len(session.calls)

        second = resolver.install_dependencies()

        assert second == first
        assert len(session.calls) == calls

    def test_force_downloads_again(self, resolver, project, session):
        project.dependencies["libx"] = "2.0"
        resolver.install_dependencies()
        calls = len(session.calls)

        resolver.install_dependencies(force=True, force_platform=True)

        assert len(session.calls) > calls

    def test_removed_dependencies_are_pruned(self, resolver, project, project_paths):
        project.dependencies["liba"] = "1.0"
        resolver.install_dependencies()
        jar = project_paths.libs_dir / "liba-1.0.jar"
        assert jar.exists()

        project.dependencies.clear()
        resolver.install_dependencies()

        assert not jar.exists()
        assert (project_paths.libs_dir / "paper-1.21.7.jar").exists()

    def test_prune_keeps_non_jar_files(self, resolver, project_paths):
        notes = project_paths.libs_dir / "README.txt"
        notes.parent.mkdir(parents=True)
        notes.write_text("keep me")
        resolver.install_dependencies()
        assert notes.exists()

    def test_unversioned_entry_is_pinned(self, resolver, project, project_paths):
        project.dependencies["libx"] = ""
        result = resolver.install_dependencies()

        assert result.artifacts[0].version == "2.0"
        assert json.loads(project_paths.config_file.read_text())["dependencies"] == {"libx": "2.0"}

    def test_local_file(self, resolver, project, project_paths):
        jar = make_jar(project_paths.libs_dir / "Vault.jar", {"plugin.yml": "name: Vault\n"})
        project.dependencies["vault"] = "file:./libs/Vault.jar"

        result = resolver.install_dependencies()

        assert result.artifacts[0].path == jar.resolve()
        assert jar.exists()

    def test_missing_local_file(self, resolver, project):
        project.dependencies["vault"] = "file:./libs/Vault.jar"
        with pytest.raises(ArtifactError, match="does not exist"):
            resolver.install_dependencies()

    def test_maven_coordinate(self, resolver, project, project_paths):
        project.dependencies["adventure"] = "maven:net.kyori:adventure-api@4.17.0"
        result = resolver.install_dependencies()

        jar = project_paths.libs_dir / "adventure-api-4.17.0.jar"
        assert result.artifacts[0].path == jar
        assert jar.read_bytes() == b"adventure"

    def test_unknown_plugin_suggests_local_file(self, resolver, project):
        project.dependencies["ghost"] = "1.0"
        with pytest.raises(ResolutionError) as exc_info:
            resolver.install_dependencies()
        assert "pluggy install ghost@file:./libs/ghost.jar" in str(exc_info.value)

    def test_platform_snapshot_missing(self, resolver, project):
        project.compatibility.versions = ["1.8.8"]
        with pytest.raises(ResolutionError, match="Unable to resolve snapshot for paper version 1.8.8"):
            resolver.install_dependencies()


class TestAddDependency:
    """Test recording install targets in plugin.json."""

    def test_latest_compatible_version(self, resolver, project_paths):
        recorded = resolver.add_dependency("libx")
        assert recorded == RegistryRef(key="libx", version="2.0")
        assert load_project(project_paths).dependencies == {"libx": "2.0"}

    def test_beta(self, resolver):
        assert resolver.add_dependency("libx", beta=True).version == "3.0-beta"

    def test_existing_entry_is_kept_without_force(self, resolver, project, project_paths, caplog):
        project.dependencies["libx"] = "1.0"
        with caplog.at_level(logging.WARNING):
            recorded = resolver.add_dependency("libx@2.0")

        assert recorded.version == "1.0"
        assert project.dependencies["libx"] == "1.0"
        assert "already exists" in caplog.text

    def test_force_overwrites(self, resolver, project):
        project.dependencies["libx"] = "1.0"
        resolver.add_dependency("libx@2.0", force=True)
        assert project.dependencies["libx"] == "2.0"

    def test_maven_coordinate_is_checked(self, resolver, project):
        recorded = resolver.add_dependency("maven:net.kyori:adventure-api@4.17.0")
        assert isinstance(recorded, CoordinateRef)
        assert project.dependencies["adventure-api"] == "maven:net.kyori:adventure-api@4.17.0"

    def test_missing_maven_coordinate(self, resolver):
        with pytest.raises(ResolutionError):
            resolver.add_dependency("maven:net.kyori:adventure-api@0.0.1")

    def test_local_file_named_after_plugin_yml(self, resolver, project, project_paths):
        make_jar(project_paths.libs_dir / "vault-1.7.jar", {"plugin.yml": "name: Vault\n"})
        recorded = resolver.add_dependency(str(project_paths.libs_dir / "vault-1.7.jar"))

        assert recorded == LocalRef(key="Vault", path="libs/vault-1.7.jar")
        assert project.dependencies["Vault"] == "file:libs/vault-1.7.jar"

    def test_local_file_without_plugin_yml(self, resolver, project_paths):
        make_jar(project_paths.libs_dir / "gson.jar", {"com/google/gson/Gson.class": b"x"})
        assert resolver.add_dependency("./libs/gson.jar").key == "gson"

    def test_missing_local_file(self, resolver):
        with pytest.raises(ArtifactError):
            resolver.add_dependency("./libs/missing.jar")


class TestRemoveDependency:
    def test_removes_entry_jar_and_shading(self, resolver, project, project_paths):
        project.dependencies["libx"] = "2.0"
        project.shading = {"libx": Shading(include=["org/libx/**"])}
        resolver.install_dependencies()
        jar = project_paths.libs_dir / "libx-2.0.jar"
        assert jar.exists()

        resolver.remove_dependency("libx")

        assert not jar.exists()
        saved = load_project(project_paths)
        assert saved.dependencies == {}
        assert saved.shading == {}

    def test_local_file_is_left_alone(self, resolver, project, project_paths):
        jar = make_jar(project_paths.libs_dir / "Vault.jar", {"plugin.yml": "name: Vault\n"})
        project.dependencies["vault"] = "file:./libs/Vault.jar"
        resolver.remove_dependency("vault")
        assert jar.exists()

    def test_unknown_dependency(self, resolver):
        with pytest.raises(ConfigurationError, match="not found"):
            resolver.remove_dependency("ghost")


class TestArtifactsOnDisk:
    def test_artifact_for(self, resolver, project_paths):
        libs = project_paths.libs_dir
        assert resolver.artifact_for("libx", "2.0") == libs / "libx-2.0.jar"
        assert resolver.artifact_for("adventure", "maven:net.kyori:adventure-api@4.17.0") == libs / "adventure-api-4.17.0.jar"
        assert resolver.artifact_for("vault", "file:./libs/Vault.jar") == (libs / "Vault.jar").resolve()
        with pytest.raises(ResolutionError, match="no resolved version"):
            resolver.artifact_for("pending", "")

    def test_expected_paths_without_io(self, resolver, project, project_paths):
        project.dependencies.update({"libx": "2.0", "pending": "", "adventure": "maven:net.kyori:adventure-api@4.17.0"})
        expected = resolver.artifacts_on_disk()

        assert expected.classpath == [
            project_paths.libs_dir / "paper-1.21.7.jar",
            project_paths.libs_dir / "libx-2.0.jar",
            project_paths.libs_dir / "adventure-api-4.17.0.jar",
        ]
