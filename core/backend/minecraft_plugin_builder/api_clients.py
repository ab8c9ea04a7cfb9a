"""
API Clients for Plugin Sources

Handles communication with Modrinth, the platform snapshot repositories and
plain Maven repositories.
"""

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

import requests

from .config import CLI_NAME, MAVEN_CENTRAL, MODRINTH_API, PLATFORM_REPOSITORIES, SNAPSHOT_SUFFIX
from .config_loader import default_settings
from . import __version__
from .errors import NetworkError, ResolutionError

logger = logging.getLogger(__name__)

USER_AGENT = f"{CLI_NAME}/{__version__}"


def _new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({'User-Agent': USER_AGENT})
    return session


def _get(session, url: str, timeout: float, what: str, params: Optional[Dict] = None):
    """
    GET a URL, turning transport failures into NetworkError and non-2xx
    responses into ResolutionError
    """
    logger.debug(f"GET {url}")
    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.Timeout as e:
        raise NetworkError(f"Timed out after {timeout}s fetching {what}: {url}") from e
    except requests.RequestException as e:
        raise NetworkError(f"Failed to fetch {what}: {e}") from e

    if not response.ok:
        raise ResolutionError(
            f"Failed to fetch {what}: {response.status_code} {response.reason}"
        )
    return response


@dataclass
class ModrinthFile:
    filename: str
    url: str
    primary: bool = False
    size: int = 0
    hashes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Dict) -> "ModrinthFile":
        return cls(
            filename=data["filename"],
            url=data["url"],
            primary=bool(data.get("primary", False)),
            size=int(data.get("size") or 0),
            hashes=data.get("hashes") or {},
        )


@dataclass
class ModrinthVersion:
    id: str
    version_number: str
    version_type: str
    loaders: List[str]
    game_versions: List[str]
    files: List[ModrinthFile]
    date_published: str = ""

    @classmethod
    def from_json(cls, data: Dict) -> "ModrinthVersion":
        return cls(
            id=data.get("id", ""),
            version_number=data["version_number"],
            version_type=data.get("version_type", "release"),
            loaders=list(data.get("loaders") or []),
            game_versions=list(data.get("game_versions") or []),
            files=[ModrinthFile.from_json(f) for f in data.get("files") or []],
            date_published=data.get("date_published", ""),
        )

    @property
    def primary_file(self) -> Optional[ModrinthFile]:
        return next((f for f in self.files if f.primary), None)


@dataclass
class ModrinthProject:
    id: str
    slug: str
    title: str
    description: str
    game_versions: List[str]
    downloads: int
    versions: List[ModrinthVersion] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict) -> "ModrinthProject":
        return cls(
            id=data["id"],
            slug=data.get("slug", data["id"]),
            title=data.get("title", data["id"]),
            description=data.get("description", ""),
            game_versions=list(data.get("game_versions") or []),
            downloads=int(data.get("downloads") or 0),
        )

    def find_version(self, version_number: str) -> Optional[ModrinthVersion]:
        return next((v for v in self.versions if v.version_number == version_number), None)


@dataclass
class SearchHit:
    project_id: str
    slug: str
    title: str
    description: str
    downloads: int
    follows: int
    author: str
    versions: List[str]
    categories: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict) -> "SearchHit":
        return cls(
            project_id=data["project_id"],
            slug=data.get("slug", data["project_id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            downloads=int(data.get("downloads") or 0),
            follows=int(data.get("follows") or 0),
            author=data.get("author", ""),
            versions=list(data.get("versions") or []),
            categories=list(data.get("categories") or []),
        )


class ModrinthAPIClient:
    """Client for Modrinth API"""

    def __init__(self, settings: Optional[Dict] = None, session=None):
        """
        Args:
            settings: Tool settings (base URL and timeouts)
            session: requests.Session-like object, mainly for tests
        """
        settings = settings or default_settings()
        self.base_url = settings['modrinth_api'].rstrip('/')
        self.timeout = settings['http_timeout']
        self.download_timeout = settings['download_timeout']
        self.session = session or _new_session()

    def _get_json(self, path: str, what: str, params: Optional[Dict] = None):
        response = _get(self.session, f"{self.base_url}{path}", self.timeout, what, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ResolutionError(f"Invalid JSON response for {what}") from e

    def get_project(self, project_id: str) -> ModrinthProject:
        """
        Fetch a project and its full version list

        Args:
            project_id: Modrinth slug or id

        Returns:
            ModrinthProject with versions newest first

        Raises:
            ResolutionError: project unknown or without versions
        """
        logger.debug(f"Fetching Modrinth project: {project_id}")
        data = self._get_json(f"/project/{project_id}", f"project {project_id} from Modrinth")
        if not data:
            raise ResolutionError(f"Project {project_id} not found on Modrinth")

        try:
            project = ModrinthProject.from_json(data)
        except (KeyError, TypeError) as e:
            raise ResolutionError(f"Malformed project record for {project_id}: missing {e}") from e

        versions = self._get_json(
            f"/project/{project_id}/version", f"versions for project {project_id} from Modrinth"
        )
        if not versions:
            raise ResolutionError(f"No versions found for project {project_id} on Modrinth")

        try:
            project.versions = [ModrinthVersion.from_json(v) for v in versions]
        except (KeyError, TypeError) as e:
            raise ResolutionError(f"Malformed version record for {project_id}: missing {e}") from e

        return project

    def get_version(self, project_id: str, version: str) -> ModrinthVersion:
        """
        Fetch a single version of a project

        Args:
            project_id: Modrinth slug or id
            version: Version id or version number

        Raises:
            ResolutionError: version unknown
        """
        data = self._get_json(
            f"/project/{project_id}/version/{version}", f"version {version} for project {project_id} from Modrinth"
        )
        if not data:
            raise ResolutionError(f"Version {version} not found for project {project_id} on Modrinth")
        try:
            return ModrinthVersion.from_json(data)
        except (KeyError, TypeError) as e:
            raise ResolutionError(f"Malformed version record for {project_id}: missing {e}") from e

    def search(self, query: str, limit: int = 10, offset: int = 0) -> List[SearchHit]:
        """
        Search Modrinth for plugins

        Returns:
            Hits sorted by descending download count
        """
        params = {
            'query': query,
            'limit': limit,
            'offset': offset,
            'index': 'relevance',
            'facets': json.dumps([["project_type:plugin"]]),
        }
        data = self._get_json("/search", "search results from Modrinth", params=params)
        hits = [SearchHit.from_json(hit) for hit in (data or {}).get("hits", [])]
        return sorted(hits, key=lambda hit: hit.downloads, reverse=True)

    def download(self, url: str) -> bytes:
        """Fetch the bytes of a version file"""
        response = _get(self.session, url, self.download_timeout, f"file {url}")
        data = response.content
        logger.debug(f"  Downloaded: {len(data):,} bytes")
        return data


@dataclass
class SnapshotMetadata:
    timestamp: str
    build_number: str
    artifact_id: str
    version: str  # paper-api-1.21.7-R0.1-20250101.120000-42
    target: str   # 1.21.7


class SnapshotRepositoryClient:
    """Resolves platform API snapshots from a Maven snapshot repository"""

    def __init__(self, settings: Optional[Dict] = None, session=None):
        settings = settings or default_settings()
        self.repositories = dict(settings.get('platform_repositories') or PLATFORM_REPOSITORIES)
        self.timeout = settings['http_timeout']
        self.download_timeout = settings['download_timeout']
        self.session = session or _new_session()

    def repository_for(self, platform: str) -> str:
        """
        Raises:
            ResolutionError: no snapshot repository known for the platform
        """
        try:
            return self.repositories[platform].rstrip('/')
        except KeyError:
            raise ResolutionError(
                f"Invalid platform: {platform}. Supported platforms are '{', '.join(self.repositories)}'."
            ) from None

    def _get_xml(self, url: str, what: str) -> ET.Element:
        response = _get(self.session, url, self.timeout, what)
        try:
            return ET.fromstring(response.text)
        except ET.ParseError as e:
            raise ResolutionError(f"Invalid XML in {what}: {e}") from e

    def resolve_repository(self, repository_url: str) -> SnapshotMetadata:
        """Resolve the latest snapshot published in a repository"""
        root = self._get_xml(f"{repository_url}/maven-metadata.xml", f"repository metadata at {repository_url}")
        latest = root.findtext("./versioning/latest")
        if not latest:
            raise ResolutionError("Invalid repository metadata format: no versioning/latest")
        return self.resolve_snapshot(repository_url, latest.split("-")[0])

    def resolve_snapshot(self, repository_url: str, version: str) -> SnapshotMetadata:
        """Resolve timestamp and build number of one snapshot version"""
        root = self._get_xml(
            f"{repository_url}/{version}-{SNAPSHOT_SUFFIX}/maven-metadata.xml",
            f"snapshot metadata for version {version}",
        )
        artifact_id = root.findtext("./artifactId")
        timestamp = root.findtext("./versioning/snapshot/timestamp")
        build_number = root.findtext("./versioning/snapshot/buildNumber")
        if not root.findtext("./version") or not artifact_id or not timestamp or not build_number:
            raise ResolutionError(f"Invalid snapshot metadata format for version {version}")

        return SnapshotMetadata(
            timestamp=timestamp,
            build_number=build_number,
            artifact_id=artifact_id,
            version=f"{artifact_id}-{version}-R0.1-{timestamp}-{build_number}",
            target=version,
        )

    def download_snapshot(self, repository_url: str, version: str) -> tuple[SnapshotMetadata, bytes]:
        """
        Download the snapshot jar of a version

        Returns:
            Tuple of (metadata, jar bytes)
        """
        snapshot = self.resolve_snapshot(repository_url, version)
        url = f"{repository_url}/{version}-{SNAPSHOT_SUFFIX}/{snapshot.version}.jar"
        response = _get(self.session, url, self.download_timeout, f"snapshot {snapshot.version}")
        return snapshot, response.content

    def latest_platform_version(self, platform: str) -> str:
        """Latest game version with a published snapshot for the platform"""
        return self.resolve_repository(self.repository_for(platform)).target


class MavenClient:
    """Fetches plain artifacts from Maven repositories"""

    def __init__(self, settings: Optional[Dict] = None, session=None):
        settings = settings or default_settings()
        self.central = settings.get('maven_central') or MAVEN_CENTRAL
        self.download_timeout = settings['download_timeout']
        self.session = session or _new_session()

    @staticmethod
    def artifact_path(group: str, artifact: str, version: str) -> str:
        return f"{group.replace('.', '/')}/{artifact}/{version}/{artifact}-{version}.jar"

    def registries(self, extra: Optional[Iterable[str]] = None) -> List[str]:
        """Project registries first, Maven Central last, without duplicates"""
        registries = []
        for registry in list(extra or []) + [self.central]:
            registry = registry if registry.endswith('/') else registry + '/'
            if registry not in registries:
                registries.append(registry)
        return registries

    def _locate(self, group: str, artifact: str, version: str,
                extra_registries: Optional[Iterable[str]]):
        registries = self.registries(extra_registries)
        path = self.artifact_path(group, artifact, version)
        logger.debug(
            f'Searching for Maven dependency "{artifact}" version "{version}" in registries: {", ".join(registries)}'
        )

        for registry in registries:
            url = urljoin(registry, path)
            try:
                response = _get(self.session, url, self.download_timeout, f"Maven artifact {url}")
            except (NetworkError, ResolutionError) as e:
                logger.debug(f"  {e}")
                continue
            return url, response

        raise ResolutionError(
            f'Maven dependency "{artifact}" version "{version}" not found in specified registries: '
            f'{", ".join(registries)}.'
        )

    def exists(self, group: str, artifact: str, version: str,
               extra_registries: Optional[Iterable[str]] = None) -> Optional[str]:
        """URL of the first registry serving the artifact, or None"""
        try:
            url, _ = self._locate(group, artifact, version, extra_registries)
        except ResolutionError:
            return None
        return url

    def fetch(self, group: str, artifact: str, version: str,
              extra_registries: Optional[Iterable[str]] = None) -> tuple[str, bytes]:
        """
        Download an artifact from the first registry that has it

        Returns:
            Tuple of (url, jar bytes)

        Raises:
            ResolutionError: no registry has the artifact
        """
        url, response = self._locate(group, artifact, version, extra_registries)
        return url, response.content
