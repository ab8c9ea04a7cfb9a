"""
Dependency Resolution

Turns the project's dependency map into jars under libs/, keeps the
platform API jar current and removes jars nothing refers to anymore.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .api_clients import (
    MavenClient,
    ModrinthAPIClient,
    ModrinthFile,
    ModrinthProject,
    ModrinthVersion,
    SnapshotRepositoryClient,
)
from .archive import inspect_archive
from .config import CLI_NAME, MANIFEST_NAME, ProjectPaths
from .config_loader import default_settings
from .errors import ArtifactError, ConfigurationError, ManifestError, ResolutionError
from .project import Project, save_project
from .specifiers import (
    CoordinateRef,
    LocalRef,
    RegistryRef,
    Specifier,
    default_local_name,
    parse_dependency,
    parse_install_target,
)
from .version_policy import get_policy

logger = logging.getLogger(__name__)


@dataclass
class MaterializedArtifact:
    """A dependency resolved to a jar on disk"""

    key: str
    specifier: Optional[Specifier]
    path: Path
    version: str

    @property
    def is_platform(self) -> bool:
        return self.specifier is None


@dataclass
class InstallResult:
    platform: MaterializedArtifact
    artifacts: List[MaterializedArtifact] = field(default_factory=list)

    @property
    def classpath(self) -> List[Path]:
        """Platform jar first, then dependencies in declared order"""
        return [self.platform.path] + [a.path for a in self.artifacts]


@dataclass
class VersionSelection:
    version: ModrinthVersion
    file: ModrinthFile
    game_version: Optional[str]
    compatible: bool


def read_plugin_name(jar_path: Path) -> Optional[str]:
    """Name declared in a jar's plugin.yml, or None"""
    contents = inspect_archive(jar_path, include=[MANIFEST_NAME])
    text = contents.read_text(MANIFEST_NAME)
    if not text:
        return None
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid {MANIFEST_NAME} in {jar_path}: {e}") from e
    if isinstance(data, dict) and isinstance(data.get("name"), str) and data["name"].strip():
        return data["name"].strip()
    return None


class DependencyResolver:
    """Resolves and materializes the dependencies of one project"""

    def __init__(self, project: Project, paths: ProjectPaths, settings: Optional[Dict] = None,
                 modrinth: Optional[ModrinthAPIClient] = None,
                 snapshots: Optional[SnapshotRepositoryClient] = None,
                 maven: Optional[MavenClient] = None):
        self.project = project
        self.paths = paths
        self.settings = settings or default_settings()
        self.policy = get_policy(self.settings.get('version_policy'))
        self.modrinth = modrinth or ModrinthAPIClient(self.settings)
        self.snapshots = snapshots or SnapshotRepositoryClient(self.settings)
        self.maven = maven or MavenClient(self.settings)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_version(self, modrinth_project: ModrinthProject, requested: Optional[str] = None,
                       force: bool = False, include_beta: bool = False,
                       pinned: bool = False) -> VersionSelection:
        """
        Pick the first version of a Modrinth project the project can use

        A version qualifies when it matches the requested version (if any),
        supports one of the project's platforms, shares a game version with the
        project (skipped with force) and is a release (unless include_beta or
        the version is already pinned in plugin.json). An exact requested
        version that fails the game version check is still taken, with a
        warning, when force is set or the version is pinned.

        Raises:
            ResolutionError: nothing qualifies
        """
        platforms = self.project.compatibility.platforms
        game_versions = self.project.compatibility.versions

        if requested and not modrinth_project.find_version(requested):
            available = ", ".join(v.version_number for v in modrinth_project.versions)
            raise ResolutionError(
                f"Version {requested} of project {modrinth_project.slug} not found on Modrinth. "
                f"Available versions: {available}"
            )

        for version in modrinth_project.versions:
            if requested and version.version_number != requested:
                continue
            if not any(loader in platforms for loader in version.loaders):
                continue

            shared = [v for v in version.game_versions if v in game_versions]
            compatible = bool(shared)
            if not compatible:
                if requested and (force or pinned):
                    logger.warning(
                        f"{modrinth_project.title} version {requested} may not be compatible with "
                        f"Minecraft {', '.join(game_versions)}.\n"
                        f"  {modrinth_project.title} supported game versions: {', '.join(version.game_versions)}"
                    )
                elif not force:
                    continue

            if version.version_type != "release" and not (include_beta or pinned):
                logger.warning(
                    f"Skipping {modrinth_project.slug} version {version.version_number} "
                    f"({version.version_type}) due to compatibility settings. Use --beta to include beta versions."
                )
                continue

            primary = version.primary_file
            if not primary:
                continue

            game_version = self.policy.choose(shared) if shared else None
            logger.debug(
                f"Found compatible version {version.version_number} for {modrinth_project.title} "
                f"(mc {game_version or 'unknown'})"
            )
            return VersionSelection(version=version, file=primary,
                                    game_version=game_version, compatible=compatible)

        raise ResolutionError(
            f'No compatible version found for "{modrinth_project.slug}" that supports Minecraft '
            f'{", ".join(game_versions)} on platforms {", ".join(platforms)}. '
            "The plugin may not support these versions yet."
        )

    def _get_modrinth_project(self, key: str) -> ModrinthProject:
        try:
            return self.modrinth.get_project(key)
        except ResolutionError as e:
            raise ResolutionError(
                f"Unable to find {key} on Modrinth ({e})",
                suggestion=f"Try manually adding the file and do {CLI_NAME} install {key}@file:./libs/{key}.jar",
            ) from e

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def artifact_path(self, specifier: Specifier, version: Optional[str] = None) -> Path:
        """Where the jar for a specifier lives (no I/O)"""
        if isinstance(specifier, LocalRef):
            return self.paths.resolve(specifier.path)
        if isinstance(specifier, CoordinateRef):
            return self.paths.libs_dir / specifier.filename
        version = version or specifier.version
        if not version:
            raise ResolutionError(f"Dependency {specifier.key} has no resolved version")
        return self.paths.libs_dir / f"{specifier.key}-{version}.jar"

    def artifact_for(self, key: str, value: str) -> Path:
        """Jar path for one dependency map entry"""
        return self.artifact_path(parse_dependency(key, value))

    def platform_path(self, platform: str, game_version: str) -> Path:
        return self.paths.libs_dir / f"{platform}-{game_version}.jar"

    def _write(self, path: Path, data: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ArtifactError(f"Failed to write {path}: {e}") from e

    # ------------------------------------------------------------------
    # Adding / removing
    # ------------------------------------------------------------------

    def add_dependency(self, target: str, force: bool = False, beta: bool = False) -> Specifier:
        """
        Validate an install argument and record it in plugin.json

        Args:
            target: name[@version], maven:group:artifact@version or a jar path
            force: Overwrite an existing entry, ignore game version checks
            beta: Allow beta and alpha versions

        Returns:
            The specifier that was recorded
        """
        specifier = parse_install_target(target)
        dependencies = self.project.dependencies

        if isinstance(specifier, CoordinateRef):
            url = self.maven.exists(specifier.group, specifier.artifact, specifier.version,
                                    self.project.registries)
            if not url:
                raise ResolutionError(
                    f'Maven dependency "{specifier.artifact}" version "{specifier.version}" not found in '
                    f'specified registries: {", ".join(self.maven.registries(self.project.registries))}.'
                )
            recorded = specifier
            logger.info(f'✓ Added Maven dependency "{specifier.key}" version "{specifier.version}" from {url}.')

        elif isinstance(specifier, LocalRef):
            file_path = self.paths.resolve(specifier.path)
            if not file_path.is_file():
                raise ArtifactError(f"File {file_path} does not exist.")
            key = specifier.key or read_plugin_name(file_path) or default_local_name(specifier.path)
            recorded = LocalRef(key=key, path=self.paths.relative(file_path))
            logger.info(f'✓ Added local dependency "{key}" from {file_path}.')

        else:
            modrinth_project = self._get_modrinth_project(specifier.key)
            selection = self.select_version(modrinth_project, specifier.version,
                                            force=force, include_beta=beta)
            recorded = RegistryRef(key=specifier.key, version=selection.version.version_number)
            logger.info(
                f'✓ Resolved {modrinth_project.title} version {recorded.version}'
                f'{" (mc " + selection.game_version + ")" if selection.game_version else ""}.'
            )

        if recorded.key in dependencies and not force:
            if dependencies[recorded.key] != recorded.encode():
                logger.warning(
                    f"Dependency {recorded.key} already exists in project ({dependencies[recorded.key]}). "
                    "Use --force to overwrite."
                )
            return parse_dependency(recorded.key, dependencies[recorded.key])

        dependencies[recorded.key] = recorded.encode()
        save_project(self.project, self.paths)
        return recorded

    def remove_dependency(self, key: str) -> None:
        """
        Drop a dependency from plugin.json and delete its cached jar

        Raises:
            ConfigurationError: dependency not declared
        """
        if not key:
            raise ConfigurationError("Dependency name cannot be empty")
        if key not in self.project.dependencies:
            raise ConfigurationError(f'Dependency "{key}" not found in project.')

        specifier = parse_dependency(key, self.project.dependencies.pop(key))
        if self.project.shading:
            self.project.shading.pop(key, None)
        save_project(self.project, self.paths)

        # Local files belong to the user
        if isinstance(specifier, LocalRef) or not getattr(specifier, "version", None):
            return

        jar_path = self.artifact_path(specifier)
        if jar_path.exists():
            jar_path.unlink()
            logger.debug(f"Removed JAR file: {jar_path}")
        else:
            logger.debug(f"JAR file not found or already removed: {jar_path}")

    # ------------------------------------------------------------------
    # Installing
    # ------------------------------------------------------------------

    def install_platform(self, force: bool = False) -> MaterializedArtifact:
        """
        Make sure the platform API jar for the active platform is present

        Raises:
            ResolutionError: the snapshot can't be resolved
        """
        platform, game_version = self.project.active_platform(self.policy)
        path = self.platform_path(platform, game_version)
        artifact = MaterializedArtifact(key=platform, specifier=None, path=path, version=game_version)

        if path.exists() and not force:
            logger.debug(
                f"{platform} snapshot version {game_version} already found, "
                f"use '{CLI_NAME} install --force' to pull the latest version."
            )
            return artifact

        repository = self.snapshots.repository_for(platform)
        try:
            snapshot, data = self.snapshots.download_snapshot(repository, game_version)
        except ResolutionError as e:
            raise ResolutionError(
                f"Unable to resolve snapshot for {platform} version {game_version}. "
                f"Please check your compatibility settings. ({e})"
            ) from e

        self._write(path, data)
        logger.info(f"✓ Installed {platform} snapshot version {snapshot.version} ({snapshot.target}).")
        return artifact

    def materialize(self, key: str, value: str, force: bool = False) -> MaterializedArtifact:
        """Resolve one dependency map entry to a jar on disk"""
        specifier = parse_dependency(key, value)

        if isinstance(specifier, LocalRef):
            path = self.artifact_path(specifier)
            if not path.is_file():
                raise ArtifactError(f"File {path} does not exist.")
            return MaterializedArtifact(key=key, specifier=specifier, path=path, version="local")

        if isinstance(specifier, CoordinateRef):
            path = self.artifact_path(specifier)
            if path.exists() and not force:
                logger.debug(
                    f"Maven dependency {specifier.artifact} version {specifier.version} already exists. "
                    "Use --force to overwrite."
                )
            else:
                if path.exists():
                    logger.debug(f"Overwriting existing Maven dependency {specifier.artifact} version {specifier.version}.")
                url, data = self.maven.fetch(specifier.group, specifier.artifact, specifier.version,
                                             self.project.registries)
                self._write(path, data)
                logger.info(f"✓ Installed Maven dependency {specifier.artifact} version {specifier.version} from {url}.")
            return MaterializedArtifact(key=key, specifier=specifier, path=path, version=specifier.version)

        if specifier.version:
            path = self.artifact_path(specifier)
            if path.exists() and not force:
                logger.debug(f"Dependency {key} version {specifier.version} already exists. Use --force to overwrite.")
                return MaterializedArtifact(key=key, specifier=specifier, path=path, version=specifier.version)

        modrinth_project = self._get_modrinth_project(key)
        selection = self.select_version(modrinth_project, specifier.version, force=force,
                                        pinned=bool(specifier.version))
        version = selection.version.version_number

        if not specifier.version:
            # Pin what "latest compatible" resolved to
            specifier = RegistryRef(key=key, version=version)
            self.project.dependencies[key] = version
            save_project(self.project, self.paths)

        path = self.artifact_path(specifier)
        if path.exists() and not force:
            return MaterializedArtifact(key=key, specifier=specifier, path=path, version=version)
        if path.exists():
            logger.debug(f"Overwriting existing dependency {key} version {version}.")

        self._write(path, self.modrinth.download(selection.file.url))
        logger.info(f"✓ Installed dependency {modrinth_project.title} version {version} from Modrinth.")
        return MaterializedArtifact(key=key, specifier=specifier, path=path, version=version)

    def install_dependencies(self, force: bool = False, force_platform: bool = False) -> InstallResult:
        """
        Materialize the platform jar and every declared dependency, then
        delete jars in libs/ that were not part of this pass

        Any failure aborts the whole pass.

        Args:
            force: Re-download dependencies and skip game version checks
            force_platform: Re-download the platform jar

        Returns:
            InstallResult with artifacts in declared order
        """
        platform = self.install_platform(force=force_platform)
        result = InstallResult(platform=platform)

        for key, value in list(self.project.dependencies.items()):
            if not key:
                continue
            result.artifacts.append(self.materialize(key, value, force=force))

        self.prune(result)
        return result

    def prune(self, result: InstallResult) -> List[Path]:
        """Delete jars in libs/ that the install result doesn't reference"""
        libs_dir = self.paths.libs_dir
        if not libs_dir.is_dir():
            return []

        keep = {path.resolve() for path in result.classpath}
        removed = []
        for entry in sorted(libs_dir.iterdir()):
            if not entry.is_file() or entry.suffix != ".jar" or entry.resolve() in keep:
                continue
            try:
                entry.unlink()
            except OSError as e:
                logger.debug(f"Failed to remove {entry.name}: {e}")
                continue
            logger.debug(f"Detected unused dependency, removing '{entry.name}'.")
            removed.append(entry)
        return removed

    def artifacts_on_disk(self) -> InstallResult:
        """Expected artifact locations for the current declaration (no I/O)"""
        platform, game_version = self.project.active_platform(self.policy)
        result = InstallResult(platform=MaterializedArtifact(
            key=platform, specifier=None, path=self.platform_path(platform, game_version), version=game_version,
        ))
        for key, value in self.project.dependencies.items():
            specifier = parse_dependency(key, value)
            if isinstance(specifier, RegistryRef) and not specifier.version:
                continue
            version = getattr(specifier, "version", None) or "local"
            result.artifacts.append(MaterializedArtifact(
                key=key, specifier=specifier, path=self.artifact_for(key, value), version=version,
            ))
        return result
