"""Exceptions raised by the posture collector."""
from typing import Optional


class PostureCollectorError(Exception):
    """Base class for all posture collector errors."""
    pass


class ConfigurationError(PostureCollectorError):
    """Raised when configuration is missing or invalid.

    Collection never starts when this is raised.
    """
    pass


class FatalFetchError(PostureCollectorError):
    """Raised when a phase that cannot degrade fails.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        super().__init__(f"failed to fetch {phase}: {cause}")


class GitHubAPIError(PostureCollectorError):
    """Raised by the transport when GitHub returns an unusable response."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)
