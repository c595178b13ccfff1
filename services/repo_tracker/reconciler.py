"""
Commit history reconciliation.

Brings the local commit store up to date with a repository's remote history.
A small window of the most recent commits is probed first:

- every probed commit unknown locally: assume the repository was never seen
  and backfill the entire history page by page;
- some probed commits unknown: top up just those;
- none unknown: nothing to do.

The probe is a heuristic: a gap hidden behind a fully known window goes
unnoticed.
"""

import logging
from typing import List, Optional, Protocol, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from shared.database import CommitRepository
from shared.exceptions import GitHubAPIError, SyncError
from shared.models import (
    CommitCreate,
    CommitDetail,
    CommitSummary,
    SyncMode,
    SyncResult,
    repository_key,
)
from services.repo_tracker.tracking import TrackingSession

logger = logging.getLogger(__name__)


class CommitSource(Protocol):
    """Remote commit source consumed by the reconciler."""

    async def list_commits(
        self, owner: str, name: str, page: int = 1, per_page: int = 30
    ) -> List[CommitSummary]:
        ...

    async def get_commit_detail(self, owner: str, name: str, sha: str) -> CommitDetail:
        ...


class Reconciler:
    """Reconciles one repository's remote history against the commit store."""

    def __init__(
        self,
        source: CommitSource,
        store: CommitRepository,
        session: TrackingSession,
        probe_size: Optional[int] = None,
        backfill_threshold: Optional[int] = None,
        page_size: Optional[int] = None,
    ):
        self.source = source
        self.store = store
        self.session = session
        self.probe_size = probe_size or settings.sync.probe_size
        self.backfill_threshold = backfill_threshold or settings.sync.backfill_threshold
        self.page_size = page_size or settings.sync.page_size

    async def reconcile(self, owner: str, name: str) -> SyncResult:
        """
        Synchronize a repository and start tracking it.

        Raises:
            ConflictError: a different repository is already tracked.
            SyncError: listing, payload or store failure; the repository stays untracked.
        """
        repository = repository_key(owner, name)
        owner, name = repository.split("/", 1)

        async with self.session.lock:
            self.session.check_available(repository)
            try:
                result = await self._synchronize(owner, name, repository)
            except (GitHubAPIError, SQLAlchemyError, ValidationError) as e:
                logger.error(f"[{repository}] Error during tracking: {e}")
                raise SyncError(repository, e) from e

            self.session.mark_tracked(repository)

        logger.info(
            f"[{repository}] Tracking started ({result.mode}, "
            f"{result.inserted} inserted, {result.skipped} skipped)"
        )
        return result

    def choose_mode(self, probed: int, absent: int) -> SyncMode:
        """Pick the sync mode from the probe window's overlap with the store."""
        if probed == 0 or absent == 0:
            return SyncMode.NOOP
        threshold = min(self.backfill_threshold or probed, probed)
        if absent >= threshold:
            return SyncMode.BACKFILL
        return SyncMode.TOPUP

    async def probe(self, owner: str, name: str) -> Tuple[List[CommitSummary], List[str]]:
        """Fetch the most recent commits and return them with the shas missing locally."""
        summaries = await self.source.list_commits(
            owner, name, page=1, per_page=self.probe_size
        )
        summaries = summaries[: self.probe_size]
        absent = [s.sha for s in summaries if not await self.store.exists(s.sha)]
        return summaries, absent

    async def top_up(self, owner: str, name: str) -> SyncResult:
        """Insert the missing commits of the probe window. Never backfills.

        Callers hold ``session.lock``.
        """
        repository = f"{owner}/{name}"
        _, absent = await self.probe(owner, name)
        inserted, skipped = await self._insert_missing(owner, name, repository, absent)
        mode = SyncMode.TOPUP if absent else SyncMode.NOOP
        return SyncResult(repository=repository, mode=mode, inserted=inserted, skipped=skipped)

    async def backfill(self, owner: str, name: str) -> Tuple[int, int]:
        """Walk the whole remote history and insert every missing commit."""
        repository = f"{owner}/{name}"
        inserted = skipped = 0
        page = 1
        while True:
            commits = await self.source.list_commits(
                owner, name, page=page, per_page=self.page_size
            )
            # Empty page ends histories that are an exact multiple of the page size
            if not commits:
                break

            absent = [c.sha for c in commits if not await self.store.exists(c.sha)]
            page_inserted, page_skipped = await self._insert_missing(
                owner, name, repository, absent
            )
            inserted += page_inserted
            skipped += page_skipped
            logger.debug(f"[{repository}] Page {page}: {len(commits)} listed, {page_inserted} new")

            if len(commits) < self.page_size:
                break
            page += 1

        return inserted, skipped

    async def _synchronize(self, owner: str, name: str, repository: str) -> SyncResult:
        summaries, absent = await self.probe(owner, name)
        mode = self.choose_mode(len(summaries), len(absent))

        if mode is SyncMode.BACKFILL:
            logger.info(f"[{repository}] No overlap found. Fetching full history.")
            inserted, skipped = await self.backfill(owner, name)
        elif mode is SyncMode.TOPUP:
            logger.info(f"[{repository}] {len(absent)} new commits. Inserting.")
            inserted, skipped = await self._insert_missing(owner, name, repository, absent)
        else:
            logger.info(f"[{repository}] No new commits.")
            inserted = skipped = 0

        return SyncResult(repository=repository, mode=mode, inserted=inserted, skipped=skipped)

    async def _insert_missing(
        self, owner: str, name: str, repository: str, shas: List[str]
    ) -> Tuple[int, int]:
        # One detail request at a time
        inserted = skipped = 0
        for sha in shas:
            stored = await self.insert_commit(owner, name, repository, sha)
            if stored is None:
                skipped += 1
            elif stored:
                inserted += 1
        return inserted, skipped

    async def insert_commit(
        self, owner: str, name: str, repository: str, sha: str
    ) -> Optional[bool]:
        """
        Fetch a commit's details and store it.

        Returns True when stored, False when it already existed and None when the
        detail fetch failed and the commit was skipped. Store errors propagate.
        """
        try:
            detail = await self.source.get_commit_detail(owner, name, sha)
            record = CommitCreate.from_detail(repository, detail)
        except (GitHubAPIError, ValidationError) as e:
            logger.warning(f"[{repository}] Skipping commit {sha}: {e}")
            return None

        stored = await self.store.insert(record)
        if stored:
            logger.info(f"Inserted commit {sha} from {repository}")
        return stored
