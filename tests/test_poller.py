"""
Unit tests for the commit poller.
"""

import asyncio

import pytest

from shared.exceptions import PollError
from shared.models import SyncMode
from services.repo_tracker.poller import CommitPoller, POLL_JOB_ID
from tests.conftest import REPOSITORY, make_history, seed


class TestCommitPoller:
    """Test cases for CommitPoller."""

    @pytest.fixture
    def poller(self, reconciler, session):
        return CommitPoller(reconciler, session, interval_seconds=5)

    @pytest.mark.asyncio
    async def test_noop_without_tracked_repository(self, poller, source):
        result = await poller.run_once()

        assert result is None
        assert source.list_calls == []

    @pytest.mark.asyncio
    async def test_inserts_new_commits(self, poller, reconciler, source, store):
        source.history = make_history(10)
        await reconciler.reconcile("octo", "widgets")
        new_commits = make_history(2, prefix="new")
        source.push(*new_commits)

        result = await poller.run_once()

        assert result.mode == SyncMode.TOPUP
        assert result.inserted == 2
        assert await store.exists(new_commits[0].sha)
        assert await store.count_by_repository(REPOSITORY) == 12

    @pytest.mark.asyncio
    async def test_nothing_new_is_noop(self, poller, reconciler, source):
        source.history = make_history(10)
        await reconciler.reconcile("octo", "widgets")
        detail_calls = len(source.detail_calls)

        result = await poller.run_once()

        assert result.mode == SyncMode.NOOP
        assert len(source.detail_calls) == detail_calls

    @pytest.mark.asyncio
    async def test_never_backfills(self, poller, reconciler, source, store):
        source.history = make_history(3)
        await reconciler.reconcile("octo", "widgets")
        # Twelve unseen commits land between two polls
        source.push(*make_history(12, prefix="burst"))

        result = await poller.run_once()

        assert result.inserted == 5
        assert source.list_calls[-1] == (REPOSITORY, 1, 5)
        assert await store.count_by_repository(REPOSITORY) == 8

    @pytest.mark.asyncio
    async def test_failure_raises_poll_error_and_keeps_tracking(
        self, poller, reconciler, source, session
    ):
        source.history = make_history(3)
        await reconciler.reconcile("octo", "widgets")
        source.fail_listing = True

        with pytest.raises(PollError) as exc_info:
            await poller.run_once()

        assert exc_info.value.repository == REPOSITORY
        assert session.tracked == REPOSITORY

    @pytest.mark.asyncio
    async def test_poll_job_swallows_poll_error(self, poller, reconciler, source):
        source.history = make_history(3)
        await reconciler.reconcile("octo", "widgets")
        source.fail_listing = True

        await poller.poll_job()

        source.fail_listing = False
        source.push(*make_history(1, prefix="later"))
        result = await poller.run_once()
        assert result.inserted == 1

    @pytest.mark.asyncio
    async def test_partial_detail_failure_keeps_inserted(self, poller, reconciler, source, store):
        source.history = make_history(5)
        await reconciler.reconcile("octo", "widgets")
        new_commits = make_history(3, prefix="new")
        source.push(*new_commits)
        source.failing_shas = {new_commits[1].sha}

        result = await poller.run_once()

        assert result.inserted == 2
        assert result.skipped == 1
        assert await store.exists(new_commits[0].sha)
        assert not await store.exists(new_commits[1].sha)

    @pytest.mark.asyncio
    async def test_waits_for_running_sync(self, poller, session, source, store):
        await seed(store, make_history(5))
        source.history = make_history(5)
        session.mark_tracked(REPOSITORY)

        await session.lock.acquire()
        task = asyncio.create_task(poller.run_once())
        await asyncio.sleep(0.01)
        assert not task.done()
        assert source.list_calls == []

        session.lock.release()
        result = await task
        assert result.mode == SyncMode.NOOP

    @pytest.mark.asyncio
    async def test_scheduler_lifecycle(self, poller):
        scheduler = poller.start()
        try:
            job = scheduler.get_job(POLL_JOB_ID)
            assert job is not None
            assert job.max_instances == 1
            assert job.coalesce is True

            status = poller.status()
            assert status["running"] is True
            assert status["next_run"] is not None
            assert status["poll_interval"] == 5
            assert poller.start() is scheduler
        finally:
            poller.stop()

        assert poller.status()["running"] is False

    @pytest.mark.asyncio
    async def test_status_without_scheduler(self, poller):
        status = poller.status()

        assert status == {
            "running": False,
            "next_run": None,
            "poll_interval": 5,
            "tracked_repository": None,
        }
