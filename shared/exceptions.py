"""Exceptions raised by the GitStatViewer tracking core."""

from typing import Optional


class GitStatViewerError(Exception):
    """Base class for all GitStatViewer errors."""


class ConflictError(GitStatViewerError):
    """A different repository is already being tracked."""

    def __init__(self, tracked: str, requested: str):
        self.tracked = tracked
        self.requested = requested
        super().__init__(
            f"Only one repo can be tracked. Currently tracking {tracked}, requested {requested}."
        )


class SyncError(GitStatViewerError):
    """Reconciliation against the remote history failed.

    The repository is left untracked, so the caller may retry.
    """

    def __init__(self, repository: str, cause: Optional[BaseException] = None):
        self.repository = repository
        self.cause = cause
        message = f"Synchronization failed for {repository}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class PollError(GitStatViewerError):
    """A single poll run failed. Never stops future runs."""

    def __init__(self, repository: str, cause: Optional[BaseException] = None):
        self.repository = repository
        self.cause = cause
        message = f"Polling failed for {repository}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class GitHubAPIError(GitStatViewerError):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        rate_limit_reset: Optional[int] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


__all__ = [
    "GitStatViewerError",
    "ConflictError",
    "SyncError",
    "PollError",
    "GitHubAPIError",
]
