"""
plugin.yml Synthesis

Merges the plugin.yml fragment a project declares with the values computed
from plugin.json and the names of the plugins it depends on.
"""

import copy
import logging
from typing import Dict, Iterable, List, Optional, Union

import yaml

from .config import MANIFEST_NAME
from .errors import ManifestError
from .project import Project
from .specifiers import CoordinateRef

logger = logging.getLogger(__name__)


def trim_object(value):
    """Recursively drop None values (and empty strings) from dicts and lists"""
    if isinstance(value, list):
        return [trim_object(v) for v in value if not _is_empty(v)]
    if isinstance(value, dict):
        return {k: trim_object(v) for k, v in value.items() if not _is_empty(v)}
    return value


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Merge two mappings into a new one

    Nested mappings merge recursively, lists are concatenated with duplicates
    dropped (base elements first), any other value from override wins.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            result[key] = _union(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _union(*lists: Iterable) -> List:
    merged = []
    for items in lists:
        for item in items:
            if item not in merged:
                merged.append(item)
    return merged


def parse_fragment(text: Optional[str], source: str = MANIFEST_NAME) -> Dict:
    """
    Parse a plugin.yml document

    Raises:
        ManifestError: invalid YAML or not a mapping
    """
    if not text or not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManifestError(f"{source} must be a mapping, got {type(data).__name__}")
    return data


def normalize_fragment(fragment: Dict) -> Dict:
    """Fold a singular author into authors and split comma separated dependencies"""
    fragment = copy.deepcopy(fragment)

    author = fragment.pop("author", None)
    authors = fragment.get("authors") or []
    if isinstance(authors, str):
        authors = [authors]
    if author:
        authors = [author] + [a for a in authors if a != author]
    if authors:
        fragment["authors"] = authors
    else:
        fragment.pop("authors", None)

    dependencies = fragment.get("dependencies")
    if isinstance(dependencies, str):
        fragment["dependencies"] = [d.strip() for d in dependencies.split(",") if d.strip()]
    elif dependencies is None:
        fragment.pop("dependencies", None)

    return fragment


def project_defaults(project: Project, api_version: Optional[str] = None) -> Dict:
    """Values computed from plugin.json (empty ones are dropped on merge)"""
    return {
        "name": project.name,
        "version": project.version,
        "main": project.main,
        "description": project.description,
        "authors": project.authors,
        "api_version": api_version,
    }


def merge_manifest(fragment: Dict, defaults: Dict) -> Dict:
    """
    Combine a declared plugin.yml fragment with computed defaults

    Non-empty defaults overwrite scalar fields of the fragment, lists are
    unioned with fragment elements first.

    Example:
        merge_manifest({"name": "a", "authors": ["X"]}, {"name": "b", "authors": ["Y"]})
        -> {"name": "b", "authors": ["X", "Y"]}
    """
    return deep_merge(normalize_fragment(fragment), trim_object(defaults))


class DependencyNameCollector:
    """Collects plugin names for the manifest's dependency list"""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.names: List[str] = []

    def add(self, key: str, plugin_yml: Optional[Union[str, bytes]], specifier=None, shaded: bool = False,
            source: str = "") -> Optional[str]:
        """
        Record the name declared in a dependency's plugin.yml

        In lenient mode a dependency without a name is skipped (with a warning
        unless it is shaded or a Maven library). That includes a plugin.yml
        that is not UTF-8, not valid YAML or not a mapping. In strict mode it
        is an error.

        Returns:
            The discovered name, or None
        """
        name = None
        if plugin_yml:
            try:
                if isinstance(plugin_yml, bytes):
                    plugin_yml = plugin_yml.decode("utf-8")
                data = parse_fragment(plugin_yml, f"{MANIFEST_NAME} of {key}")
            except (UnicodeDecodeError, ManifestError) as e:
                if self.strict:
                    raise ManifestError(
                        f"Dependency {key} ({source or 'unknown source'}) has an unreadable {MANIFEST_NAME}: {e}"
                    ) from e
                logger.debug(f"Ignoring unreadable {MANIFEST_NAME} of {key}: {e}")
                data = {}
            value = data.get("name")
            if isinstance(value, str) and value.strip():
                name = value.strip()

        if name:
            if name not in self.names:
                self.names.append(name)
            return name

        if self.strict:
            raise ManifestError(
                f"Dependency {key} ({source or 'unknown source'}) does not have a valid {MANIFEST_NAME} with a name."
            )
        if not shaded and not isinstance(specifier, CoordinateRef):
            logger.warning(
                f"Dependency {key} does not have a valid {MANIFEST_NAME} file, "
                f"will not be included in {MANIFEST_NAME} dependencies."
            )
        return None


def build_manifest(project: Project, fragment: Dict, dependency_names: Iterable[str],
                   api_version: Optional[str]) -> Dict:
    """Final plugin.yml content for a build"""
    manifest = merge_manifest(fragment, project_defaults(project, api_version))
    manifest["dependencies"] = _union(manifest.get("dependencies") or [], dependency_names)
    if not manifest.get("authors"):
        manifest.pop("authors", None)
    return manifest


def dump_manifest(manifest: Dict) -> str:
    return yaml.safe_dump(manifest, sort_keys=False, allow_unicode=True, default_flow_style=False)
