"""
Shared fixtures for GitStatViewer tests.

Provides an in-memory SQLite commit store and an in-memory remote commit
source with GitHub's pagination semantics.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio

from shared.database import CommitRepository, DatabaseManager
from shared.exceptions import GitHubAPIError
from shared.models import CommitCreate, CommitDetail, CommitSummary
from services.repo_tracker.reconciler import Reconciler
from services.repo_tracker.tracking import TrackingSession

REPOSITORY = "octo/widgets"


def make_history(
    count: int,
    start: datetime = datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
    prefix: str = "sha",
) -> List[CommitDetail]:
    """Remote history of ``count`` commits, one per hour, newest first."""
    commits = [
        CommitDetail(
            sha=f"{prefix}-{i:04d}",
            author_name="Patrick Holmes" if i % 2 else "Ada Lovelace",
            authored_date=start + timedelta(hours=i),
            additions=10,
            deletions=2,
        )
        for i in range(count)
    ]
    return list(reversed(commits))


class FakeCommitSource:
    """In-memory commit source mimicking the GitHub commits API."""

    def __init__(self, history: Optional[List[CommitDetail]] = None):
        self.history: List[CommitDetail] = list(history or [])
        self.list_calls: List[Tuple[str, int, int]] = []
        self.detail_calls: List[str] = []
        self.failing_shas: Set[str] = set()
        self.fail_listing = False

    @property
    def by_sha(self) -> Dict[str, CommitDetail]:
        return {c.sha: c for c in self.history}

    def push(self, *commits: CommitDetail) -> None:
        """Add commits on top of the history (they become the newest)."""
        self.history = list(commits) + self.history

    async def list_commits(self, owner, name, page=1, per_page=30):
        self.list_calls.append((f"{owner}/{name}", page, per_page))
        if self.fail_listing:
            raise GitHubAPIError("Server Error", status_code=500)
        start = (page - 1) * per_page
        return [
            CommitSummary(sha=c.sha, author_name=c.author_name, authored_date=c.authored_date)
            for c in self.history[start:start + per_page]
        ]

    async def get_commit_detail(self, owner, name, sha):
        self.detail_calls.append(sha)
        if sha in self.failing_shas:
            raise GitHubAPIError(f"No commit found for SHA: {sha}", status_code=422)
        return self.by_sha[sha]


async def seed(store: CommitRepository, commits: List[CommitDetail], repository: str = REPOSITORY):
    """Store commits directly, bypassing the remote."""
    for commit in commits:
        await store.insert(CommitCreate.from_detail(repository, commit))


@pytest_asyncio.fixture
async def db():
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def store(db):
    return CommitRepository(db)


@pytest.fixture
def session():
    return TrackingSession()


@pytest.fixture
def source():
    return FakeCommitSource()


@pytest.fixture
def reconciler(source, store, session):
    return Reconciler(source, store, session, probe_size=5, page_size=100)
