"""
Archive Inspection

Lists the entries of a jar (zip) that pass include/exclude glob filters.
Entry contents stay in the archive until read_bytes()/read_text() is called.
"""

import fnmatch
import logging
import zipfile
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence

from .errors import ArchiveDecodeError, ArchiveError

logger = logging.getLogger(__name__)


def glob_match(name: str, pattern: str) -> bool:
    """
    Match an archive entry name against a glob pattern

    "**" spans any number of path segments (including none); "*", "?" and
    "[...]" only match inside one segment.

    Args:
        name: Entry name using "/" separators
        pattern: Glob pattern

    Returns:
        True if the whole name matches
    """
    parts = [part for part in name.split("/") if part]
    pattern_parts = []
    for part in pattern.replace("\\", "/").split("/"):
        if not part:
            continue
        if part == "**" and pattern_parts and pattern_parts[-1] == "**":
            continue
        pattern_parts.append(part)

    def match_parts(path_parts, pat_parts):
        if not pat_parts:
            return not path_parts
        head = pat_parts[0]
        if head == "**":
            if len(pat_parts) == 1:
                return True
            for idx in range(len(path_parts) + 1):
                if match_parts(path_parts[idx:], pat_parts[1:]):
                    return True
            return False
        if not path_parts:
            return False
        if not fnmatch.fnmatchcase(path_parts[0], head):
            return False
        return match_parts(path_parts[1:], pat_parts[1:])

    return match_parts(parts, pattern_parts)


def matches_any(name: str, patterns: Optional[Sequence[str]]) -> bool:
    return any(glob_match(name, pattern) for pattern in patterns or ())


class ArchiveEntry:
    """One file inside an archive, read on demand"""

    def __init__(self, archive_path: Path, name: str, size: int):
        self.archive_path = archive_path
        self.name = name
        self.size = size

    def read_bytes(self) -> bytes:
        try:
            with zipfile.ZipFile(self.archive_path) as zf:
                return zf.read(self.name)
        except (OSError, zipfile.BadZipFile, KeyError) as e:
            raise ArchiveError(f"Failed to read {self.name} from {self.archive_path}: {e}") from e

    def read_text(self) -> str:
        try:
            return self.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise ArchiveDecodeError(
                f"Entry {self.name} in {self.archive_path} is not UTF-8 text"
            ) from e

    def __repr__(self) -> str:
        return f"ArchiveEntry({self.archive_path.name}!{self.name}, {self.size} bytes)"


class ArchiveContents(Mapping):
    """Read-only mapping of entry name -> ArchiveEntry"""

    def __init__(self, archive_path: Path, entries: Dict[str, ArchiveEntry]):
        self.archive_path = archive_path
        self._entries = entries

    def __getitem__(self, name: str) -> ArchiveEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def read_text(self, name: str) -> Optional[str]:
        """Text of an entry, or None if the archive has no such entry"""
        entry = self._entries.get(name)
        return entry.read_text() if entry else None


def inspect_archive(archive_path: Path, exclude: Optional[Sequence[str]] = None,
                    include: Optional[Sequence[str]] = None) -> ArchiveContents:
    """
    List the entries of an archive that pass the filters

    Exclude patterns win over include patterns. include=None keeps every entry
    that is not excluded. Directory entries are skipped.

    Args:
        archive_path: Path to the jar/zip
        exclude: Glob patterns to drop
        include: Glob patterns to keep

    Returns:
        ArchiveContents mapping

    Raises:
        ArchiveError: archive missing or not a zip file
    """
    archive_path = Path(archive_path)
    try:
        with zipfile.ZipFile(archive_path) as zf:
            infos = zf.infolist()
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"Failed to open archive {archive_path}: {e}") from e

    entries = {}
    for info in infos:
        name = info.filename
        if info.is_dir():
            continue
        if matches_any(name, exclude):
            continue
        if include is not None and not matches_any(name, include):
            continue
        entries[name] = ArchiveEntry(archive_path, name, info.file_size)

    logger.debug(f"Inspected {archive_path.name}: {len(entries)} of {len(infos)} entries selected")
    return ArchiveContents(archive_path, entries)
