"""
Commit statistics aggregation.

Pure functions deriving the codebase-size-over-time series and per-author
contribution shares from stored commits. Nothing here touches the network or
the database.
"""

from datetime import date, timedelta
from typing import Dict, List, Sequence

from shared.models import (
    AuthorSummary,
    CommitBase,
    CommitStatistics,
    DailyLinePoint,
    ensure_utc,
)


def normalize_author(name: str) -> str:
    """Grouping key for author names: whitespace removed, case-folded."""
    return "".join(name.split()).casefold()


def _percent(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part * 100 / whole, 2)


def _order_key(item):
    position, commit = item
    commit_id = getattr(commit, "id", None)
    return ensure_utc(commit.timestamp), position if commit_id is None else commit_id


def sort_commits(commits: Sequence[CommitBase]) -> List[CommitBase]:
    """Oldest first; equal timestamps keep store insertion order."""
    indexed = sorted(enumerate(commits), key=_order_key)
    return [commit for _, commit in indexed]


def daily_line_series(commits: Sequence[CommitBase]) -> List[DailyLinePoint]:
    """
    Cumulative net lines at the end of every UTC day from the first to the last
    commit, inclusive. Days without commits carry the previous value forward.

    ``commits`` must already be sorted oldest first.
    """
    if not commits:
        return []

    running = 0
    end_of_day: Dict[date, int] = {}
    for commit in commits:
        running += commit.additions - commit.deletions
        end_of_day[ensure_utc(commit.timestamp).date()] = running

    first = ensure_utc(commits[0].timestamp).date()
    last = ensure_utc(commits[-1].timestamp).date()

    series = []
    current = 0
    day = first
    while day <= last:
        current = end_of_day.get(day, current)
        series.append(DailyLinePoint(day=day, lines=current))
        day += timedelta(days=1)
    return series


def author_summaries(commits: Sequence[CommitBase]) -> List[AuthorSummary]:
    """Per-author totals and shares, most active authors first."""
    groups: Dict[str, AuthorSummary] = {}
    for commit in commits:
        key = normalize_author(commit.author)
        summary = groups.get(key)
        if summary is None:
            # First spelling seen represents the group
            summary = groups[key] = AuthorSummary(author=commit.author)
        summary.commits += 1
        summary.additions += commit.additions
        summary.deletions += commit.deletions

    total_commits = sum(s.commits for s in groups.values())
    total_changed = sum(s.additions + s.deletions for s in groups.values())

    for summary in groups.values():
        changed = summary.additions + summary.deletions
        summary.average_lines_per_commit = round(changed / summary.commits, 2)
        summary.commit_share = _percent(summary.commits, total_commits)
        summary.line_share = _percent(changed, total_changed)

    return sorted(groups.values(), key=lambda s: s.commits, reverse=True)


def aggregate(commits: Sequence[CommitBase]) -> CommitStatistics:
    """Derive every statistic shown for a tracked repository."""
    ordered = sort_commits(commits)
    return CommitStatistics(
        daily_series=daily_line_series(ordered),
        authors=author_summaries(ordered),
        total_commits=len(ordered),
        total_lines=sum(c.additions - c.deletions for c in ordered),
    )
