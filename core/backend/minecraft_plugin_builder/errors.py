"""
Error Types

Every failure the tool reports is one of these. The CLI catches PluggyError
at a single point and turns it into exit code 1.
"""

from typing import Optional


class PluggyError(Exception):
    """Base class for all reported failures"""


class ConfigurationError(PluggyError):
    """Malformed project declaration, settings or identifiers"""


class ResolutionError(PluggyError):
    """Package, version or metadata could not be resolved"""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.suggestion = suggestion

    def __str__(self) -> str:
        message = super().__str__()
        if self.suggestion:
            return f"{message}\n  {self.suggestion}"
        return message


class NetworkError(PluggyError):
    """Transport failure or timeout talking to a remote server"""


class ArtifactError(PluggyError):
    """Missing local file or unwritable directory"""


class ArchiveError(ArtifactError):
    """Archive could not be opened or read"""


class ArchiveDecodeError(ArchiveError):
    """Archive entry is not valid UTF-8 text"""


class ManifestError(PluggyError):
    """plugin.yml could not be parsed or a dependency has no declared name"""


class ExternalToolError(PluggyError):
    """javac/jar exited non-zero or timed out"""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr
