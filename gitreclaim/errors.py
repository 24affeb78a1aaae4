"""
Exception hierarchy for gitreclaim.

Only NotVulnerableError and BootstrapError abort a run. Every other error is
caught by the graph walker and recorded as a degraded outcome.
"""


class GitReclaimError(Exception):
    """Base class for all gitreclaim errors."""
    pass


class NotVulnerableError(GitReclaimError):
    """Raised when the target does not expose a usable .git directory."""
    pass


class BootstrapError(GitReclaimError):
    """Raised when a mandatory bootstrap file (config, HEAD target) is unavailable."""
    pass


class FetchError(GitReclaimError):
    """Raised when a relative path cannot be retrieved from the target."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class NotFoundError(FetchError):
    """Raised when the target answers 404 for a path."""
    pass


class UnexpectedStatusError(FetchError):
    """Raised when the target answers with a non-200, non-404 status."""

    def __init__(self, path: str, status_code: int):
        super().__init__(path, f"unexpected status code {status_code}")
        self.status_code = status_code


class TransportError(FetchError):
    """Raised on connection, TLS or timeout failures."""
    pass


class ObjectMissingError(GitReclaimError):
    """Raised when an object is not present in the local object store."""
    pass


class DecodeError(GitReclaimError):
    """Raised when a stored object cannot be decoded."""
    pass


class PackResolveError(GitReclaimError):
    """Raised when a pack archive cannot be resolved into objects."""
    pass


class MaterializeError(GitReclaimError):
    """Raised when the working tree cannot be written to disk."""
    pass
