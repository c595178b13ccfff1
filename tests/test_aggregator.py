"""
Unit tests for commit statistics aggregation.
"""

from datetime import date, datetime, timezone

import pytest

from shared.models import CommitRecord
from services.repo_tracker.aggregator import (
    aggregate,
    author_summaries,
    normalize_author,
    sort_commits,
)


def record(sha, when, additions=0, deletions=0, author="Patrick Holmes", record_id=None):
    return CommitRecord(
        id=record_id,
        sha=sha,
        repository="octo/widgets",
        author=author,
        timestamp=when,
        additions=additions,
        deletions=deletions,
    )


def day(n, hour=12):
    return datetime(2024, 3, n, hour, tzinfo=timezone.utc)


class TestDailySeries:
    """Cumulative codebase size per calendar day."""

    def test_carries_forward_idle_days(self):
        commits = [record("a", day(1), additions=10), record("b", day(3), additions=5)]

        stats = aggregate(commits)

        assert [(p.day, p.lines) for p in stats.daily_series] == [
            (date(2024, 3, 1), 10),
            (date(2024, 3, 2), 10),
            (date(2024, 3, 3), 15),
        ]

    def test_input_order_does_not_matter(self):
        commits = [record("b", day(3), additions=5), record("a", day(1), additions=10)]

        stats = aggregate(commits)

        assert [p.lines for p in stats.daily_series] == [10, 10, 15]

    def test_last_commit_of_day_wins(self):
        commits = [
            record("a", day(1, 9), additions=10),
            record("b", day(1, 18), additions=3, deletions=8),
            record("c", day(2, 7), additions=1),
        ]

        stats = aggregate(commits)

        assert [(p.day, p.lines) for p in stats.daily_series] == [
            (date(2024, 3, 1), 5),
            (date(2024, 3, 2), 6),
        ]

    def test_series_ends_at_latest_commit(self):
        stats = aggregate([record("a", day(4), additions=1)])

        assert len(stats.daily_series) == 1
        assert stats.daily_series[0].day == date(2024, 3, 4)

    def test_days_are_utc(self):
        late_evening = datetime.fromisoformat("2024-03-01T23:30:00-05:00")

        stats = aggregate([record("a", late_evening, additions=2)])

        assert stats.daily_series[0].day == date(2024, 3, 2)

    def test_total_lines_can_be_negative(self):
        commits = [record("a", day(1), additions=5), record("b", day(2), deletions=20)]

        stats = aggregate(commits)

        assert stats.total_lines == -15
        assert stats.daily_series[-1].lines == -15


class TestAuthorSummary:
    """Per-author contribution statistics."""

    def test_normalize_author(self):
        assert normalize_author("Patrick Holmes") == "patrickholmes"
        assert normalize_author(" PatrickHolmes\t") == "patrickholmes"

    def test_near_duplicate_names_merge(self):
        commits = [
            record("a", day(1), additions=10, author="Patrick Holmes"),
            record("b", day(2), additions=4, deletions=2, author="PatrickHolmes"),
        ]

        authors = aggregate(commits).authors

        assert len(authors) == 1
        assert authors[0].author == "Patrick Holmes"
        assert authors[0].commits == 2
        assert authors[0].additions == 14
        assert authors[0].deletions == 2

    def test_shares_and_averages(self):
        commits = [
            record("a", day(1), additions=30, deletions=10, author="Ada"),
            record("b", day(2), additions=20, author="Ada"),
            record("c", day(3), additions=40, author="Grace"),
        ]

        authors = aggregate(commits).authors

        ada, grace = authors
        assert ada.author == "Ada"
        assert ada.commits == 2
        assert ada.average_lines_per_commit == 30.0
        assert ada.commit_share == pytest.approx(66.67)
        assert ada.line_share == 60.0
        assert grace.commit_share == pytest.approx(33.33)
        assert grace.line_share == 40.0
        assert grace.lines_changed == 40

    def test_zero_lines_changed_reports_zero_share(self):
        commits = [record("a", day(1), author="Merge Bot")]

        authors = author_summaries(commits)

        assert authors[0].line_share == 0.0
        assert authors[0].commit_share == 100.0
        assert authors[0].average_lines_per_commit == 0.0

    def test_most_active_first(self):
        commits = [
            record("a", day(1), author="Ada"),
            record("b", day(2), author="Grace"),
            record("c", day(3), author="grace"),
        ]

        authors = aggregate(commits).authors

        assert [a.author for a in authors] == ["Grace", "Ada"]


class TestAggregate:
    """Totals and edge cases."""

    def test_empty_input(self):
        stats = aggregate([])

        assert stats.total_commits == 0
        assert stats.total_lines == 0
        assert stats.daily_series == []
        assert stats.authors == []

    def test_ties_keep_insertion_order(self):
        same_time = day(1)
        commits = [
            record("second", same_time, record_id=2),
            record("first", same_time, record_id=1),
            record("third", same_time, record_id=3),
        ]

        ordered = sort_commits(commits)

        assert [c.sha for c in ordered] == ["first", "second", "third"]

    def test_first_seen_name_follows_time_order(self):
        commits = [
            record("b", day(2), author="PatrickHolmes"),
            record("a", day(1), author="Patrick Holmes"),
        ]

        assert aggregate(commits).authors[0].author == "Patrick Holmes"

    def test_totals(self):
        commits = [
            record("a", day(1), additions=10, deletions=2),
            record("b", day(2), additions=5, deletions=1),
        ]

        stats = aggregate(commits)

        assert stats.total_commits == 2
        assert stats.total_lines == 12
