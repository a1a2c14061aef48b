"""
Error Types

Exception hierarchy shared by the backend handlers and services.
Every error carries a human-readable message that the frontends show as-is.
"""

from typing import List, Optional


class ProtonKitError(Exception):
    """Base class for all protonkit errors."""


class NotFoundError(ProtonKitError):
    """A required file, installer or script does not exist."""


class VerbNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"Unknown verb: {name}")
        self.name = name


class VerbCycleError(ProtonKitError):
    def __init__(self, chain: List[str]):
        super().__init__(f"Verb dependency cycle detected: {' -> '.join(chain)}")
        self.chain = chain


class ToolUnavailableError(ProtonKitError):
    """None of the external tools able to perform an operation is installed."""


class VerificationError(ProtonKitError):
    """A downloaded file failed digest verification."""


class SubprocessError(ProtonKitError):
    """An external process could not be spawned or exited with an error."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class FilesystemError(ProtonKitError):
    """A create/copy/write operation on the prefix failed."""


class ConfigurationError(ProtonKitError):
    """Invalid user configuration or verb definition."""


class DownloadError(ProtonKitError):
    """A fetch tool or HTTP transfer failed to retrieve a file."""
