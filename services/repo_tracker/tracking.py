"""Tracking session: owner of the single tracked-repository slot."""

import asyncio
from typing import Optional

from shared.exceptions import ConflictError


class TrackingSession:
    """
    Holds the currently tracked repository and the lock guarding the write path.

    The service layer creates one session per process and hands it to the
    reconciler and the poller. Every fetch/insert phase runs under ``lock`` so a
    tracking request and a poll run never interleave.
    """

    def __init__(self):
        self._tracked: Optional[str] = None
        self.lock = asyncio.Lock()

    @property
    def tracked(self) -> Optional[str]:
        return self._tracked

    def check_available(self, repository: str) -> None:
        """Raise ConflictError when a different repository is tracked."""
        if self._tracked is not None and self._tracked != repository:
            raise ConflictError(self._tracked, repository)

    def mark_tracked(self, repository: str) -> None:
        self.check_available(repository)
        self._tracked = repository
