"""
Package Assembly

Compiles the project, shades selected dependency contents, writes the merged
plugin.yml and packages everything into dist/{name}-{version}.jar.
"""

import logging
import os
import posixpath
import shutil
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .archive import ArchiveContents, inspect_archive
from .config import ARCHIVE_EXTENSION, DEFAULT_SHADING_EXCLUDE, MANIFEST_NAME, ProjectPaths
from .config_loader import default_settings
from .errors import ArchiveError, ArtifactError, ExternalToolError
from .manifest import DependencyNameCollector, build_manifest, dump_manifest, parse_fragment
from .project import Project, Shading, render_template
from .resolver import InstallResult, MaterializedArtifact

logger = logging.getLogger(__name__)

MAX_INSPECT_WORKERS = 8


def shading_filters(shading: Optional[Shading]) -> tuple[List[str], List[str]]:
    """
    Exclude/include patterns used to inspect a dependency archive

    Without a rule only plugin.yml is looked at. A rule without includes
    takes everything outside META-INF.

    Returns:
        Tuple of (exclude, include)
    """
    exclude = list(DEFAULT_SHADING_EXCLUDE)
    if shading is None:
        return exclude, [MANIFEST_NAME]

    exclude += shading.exclude or []
    if shading.include:
        return exclude, [MANIFEST_NAME] + list(shading.include)
    return exclude, [MANIFEST_NAME, "**/*"]


@dataclass
class InspectedArtifact:
    artifact: MaterializedArtifact
    contents: ArchiveContents
    shading: Optional[Shading]


class PackageAssembler:
    """Builds the distributable jar for a project"""

    def __init__(self, project: Project, paths: ProjectPaths, settings: Optional[Dict] = None):
        self.project = project
        self.paths = paths
        self.settings = settings or default_settings()
        self.tool_timeout = self.settings['tool_timeout']

    @property
    def archive_path(self) -> Path:
        return self.paths.dist_dir / f"{self.project.name}-{self.project.version}.{ARCHIVE_EXTENSION}"

    def build(self, install_result: InstallResult) -> Path:
        """
        Run the whole build

        Args:
            install_result: Output of DependencyResolver.install_dependencies()

        Returns:
            Path of the packaged jar

        Raises:
            PluggyError: any step failed; dist/ is only written by the last step
        """
        api_version = install_result.platform.version

        # 1. Fresh build directory
        self._reset_dir(self.paths.build_dir)

        # 2. Declared plugin.yml fragment
        fragment = self.read_manifest_fragment()

        # 3. Inspect dependencies, shade selected entries
        collector = DependencyNameCollector(strict=bool(self.settings.get('strict_manifest')))
        for inspected in self.inspect_dependencies(install_result.artifacts):
            artifact = inspected.artifact
            logger.debug(f"Processing dependency {artifact.key} from {artifact.path}")
            if inspected.shading is not None:
                self.shade(inspected)
            plugin_yml = inspected.contents.get(MANIFEST_NAME)
            collector.add(
                artifact.key,
                plugin_yml.read_bytes() if plugin_yml else None,
                specifier=artifact.specifier,
                shaded=inspected.shading is not None,
                source=str(artifact.path),
            )

        # 4. Merged plugin.yml
        manifest = build_manifest(self.project, fragment, collector.names, api_version)
        manifest_path = self.paths.build_dir / MANIFEST_NAME
        manifest_path.write_text(dump_manifest(manifest), encoding="utf-8")
        logger.debug(f"Wrote {manifest_path}")

        # 5. Compile
        self.compile(install_result.classpath)

        # 6. Resources
        self.copy_resources()

        # 7. Package
        archive = self.package()
        logger.info(
            f'✓ Project "{self.project.name}" built successfully! '
            f"Plugin file created at {self.paths.relative(archive)}"
        )
        return archive

    @staticmethod
    def _reset_dir(path: Path) -> None:
        try:
            shutil.rmtree(path, ignore_errors=True)
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactError(f"Failed to recreate {path}: {e}") from e

    def _manifest_resource(self) -> Optional[tuple[str, str]]:
        for resource, source in self.project.resources.items():
            if posixpath.normpath(resource.replace("\\", "/")) == MANIFEST_NAME:
                return resource, source
        return None

    def read_manifest_fragment(self) -> Dict:
        """plugin.yml declared under resources (templated), or {}"""
        declared = self._manifest_resource()
        if not declared:
            return {}
        resource, source = declared
        path = self.paths.resolve(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ArtifactError(f"Failed to read resource {resource} from {source}: {e.strerror or e}") from e
        return parse_fragment(render_template(text, self.project), source)

    def inspect_dependencies(self, artifacts: List[MaterializedArtifact]) -> List[InspectedArtifact]:
        """Open every dependency archive concurrently, results in declared order"""
        if not artifacts:
            return []

        def inspect(artifact: MaterializedArtifact) -> InspectedArtifact:
            shading = self.project.shading_for(artifact.key)
            exclude, include = shading_filters(shading)
            contents = inspect_archive(artifact.path, exclude=exclude, include=include)
            return InspectedArtifact(artifact=artifact, contents=contents, shading=shading)

        workers = min(MAX_INSPECT_WORKERS, len(artifacts))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(inspect, artifacts))

    def shade(self, inspected: InspectedArtifact) -> List[Path]:
        """Copy the selected entries of a dependency into the build directory"""
        build_dir = self.paths.build_dir.resolve()
        logger.debug(f"Shading dependency {inspected.artifact.key} with settings: {inspected.shading.to_dict()}")

        written = []
        for name, entry in inspected.contents.items():
            if name == MANIFEST_NAME:
                continue
            dest = (build_dir / name).resolve()
            if build_dir not in dest.parents:
                raise ArchiveError(f"Refusing to shade {name} from {entry.archive_path}: path escapes build directory")
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(entry.read_bytes())
            logger.debug(f"Shaded file {name} to {dest}")
            written.append(dest)
        return written

    def source_files(self) -> List[Path]:
        if not self.paths.source_dir.is_dir():
            return []
        return sorted(self.paths.source_dir.rglob("*.java"))

    def _run(self, tool: str, args: List[str], failure: str) -> str:
        command = [tool] + args
        logger.debug(f"Executing {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                cwd=self.paths.root,
                capture_output=True,
                text=True,
                timeout=self.tool_timeout,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(f"{failure}: '{tool}' not found on PATH. Is a JDK installed?") from e
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(f"{failure}: {tool} timed out after {self.tool_timeout}s") from e

        if result.returncode != 0:
            raise ExternalToolError(f"{failure}: {result.stderr}", stderr=result.stderr)
        if result.stdout:
            logger.debug(result.stdout)
        return result.stdout

    def compile(self, classpath: List[Path]) -> None:
        """
        Run javac over src/**/*.java

        Raises:
            ArtifactError: no sources
            ExternalToolError: javac failed
        """
        files = self.source_files()
        if not files:
            raise ArtifactError(f"No Java source files found in {self.paths.relative(self.paths.source_dir)}/ directory")

        args = [
            "-d", str(self.paths.build_dir),
            "-encoding", "UTF-8",
            "-Xlint:deprecation",
            "-Xlint:unchecked",
            "-cp", os.pathsep.join(self.paths.relative(path) for path in classpath),
        ]
        args += [str(path) for path in files]
        self._run("javac", args, "Failed to compile Java sources")

    def copy_resources(self) -> List[Path]:
        """Copy declared resources into the build directory, filling in placeholders"""
        manifest_resource = self._manifest_resource()
        build_dir = self.paths.build_dir.resolve()
        written = []
        for resource, source in self.project.resources.items():
            if manifest_resource and resource == manifest_resource[0]:
                continue
            source_path = self.paths.resolve(source)
            dest = (build_dir / posixpath.normpath(resource.replace("\\", "/"))).resolve()
            if build_dir not in dest.parents:
                raise ArtifactError(f"Refusing to copy resource {resource}: path escapes build directory")
            try:
                data = source_path.read_bytes()
                dest.parent.mkdir(parents=True, exist_ok=True)
                try:
                    dest.write_text(render_template(data.decode("utf-8"), self.project), encoding="utf-8")
                except UnicodeDecodeError:
                    dest.write_bytes(data)
            except OSError as e:
                raise ArtifactError(
                    f"Failed to copy resource {resource} from {source}: {e.strerror or e}"
                ) from e
            logger.debug(f"Copied and processed resource {resource} to {dest}")
            written.append(dest)
        return written

    def package(self) -> Path:
        """Recreate dist/ and run jar over the build directory"""
        self._reset_dir(self.paths.dist_dir)
        archive = self.archive_path
        self._run("jar", ["cf", str(archive), "-C", str(self.paths.build_dir), "."],
                  "Failed to create JAR file")
        return archive
