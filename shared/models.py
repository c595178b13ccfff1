"""
Data models for GitStatViewer.

This module provides:
- Pydantic models for commit records, remote payloads and derived statistics
- The SQLAlchemy table mapping for persisted commits
- Conversion and validation helpers between the two
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, computed_field
from sqlalchemy import Column, String, DateTime, Integer, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

UNKNOWN_AUTHOR = "Unknown"


def repository_key(owner: str, name: str) -> str:
    """Canonical ``owner/name`` key of a tracked repository."""
    owner = (owner or "").strip()
    name = (name or "").strip()
    if not owner or not name:
        raise ValueError("Owner and repo required")
    if "/" in owner or "/" in name:
        raise ValueError("Owner and repo must not contain '/'")
    return f"{owner}/{name}"


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SyncMode(str, Enum):
    """How a reconciliation run caught up with the remote history."""
    TOPUP = "topup"
    BACKFILL = "backfill"
    NOOP = "noop"


# Remote payloads
class CommitSummary(BaseModel):
    """One entry of the remote commit listing."""

    sha: str = Field(..., min_length=1, description="Commit SHA")
    author_name: Optional[str] = Field(None, description="Author display name")
    authored_date: Optional[datetime] = Field(None, description="Authored timestamp")


class CommitDetail(CommitSummary):
    """Single-commit payload including line statistics."""

    additions: int = Field(default=0, ge=0, description="Lines added")
    deletions: int = Field(default=0, ge=0, description="Lines deleted")


# Pydantic Models for API
class CommitBase(BaseModel):
    """Base commit model with common fields."""

    sha: str = Field(..., min_length=1, max_length=64, description="Git commit SHA")
    repository: str = Field(..., min_length=3, max_length=255, description="owner/name key")
    author: str = Field(default=UNKNOWN_AUTHOR, max_length=255, description="Commit author")
    timestamp: datetime = Field(..., description="Authored timestamp")
    additions: int = Field(default=0, ge=0, description="Lines added")
    deletions: int = Field(default=0, ge=0, description="Lines deleted")

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v):
        owner, _, name = v.partition("/")
        if not owner or not name:
            raise ValueError("Repository must be in owner/name form")
        return v

    @field_validator("author")
    @classmethod
    def validate_author(cls, v):
        return v.strip() or UNKNOWN_AUTHOR

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v):
        return ensure_utc(v)

    @computed_field
    @property
    def net_lines(self) -> int:
        """Net change in codebase size."""
        return self.additions - self.deletions


class CommitCreate(CommitBase):
    """Model for inserting a new commit."""

    @classmethod
    def from_detail(cls, repository: str, detail: CommitDetail) -> "CommitCreate":
        """Build an insertable record from a remote commit detail."""
        return cls(
            sha=detail.sha,
            repository=repository,
            author=detail.author_name or UNKNOWN_AUTHOR,
            timestamp=detail.authored_date or datetime.now(timezone.utc),
            additions=detail.additions,
            deletions=detail.deletions,
        )


class CommitRecord(CommitBase):
    """Stored commit, immutable once created."""

    id: Optional[int] = Field(None, description="Store insertion order")
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "frozen": True}


class SyncResult(BaseModel):
    """Outcome of a reconciliation or poll run."""

    repository: str
    mode: SyncMode
    inserted: int = Field(default=0, ge=0, description="Commits stored by this run")
    skipped: int = Field(default=0, ge=0, description="Commits skipped after a failed detail fetch")

    model_config = {"use_enum_values": True}


# Derived statistics
class DailyLinePoint(BaseModel):
    """Cumulative codebase size at the end of a calendar day."""

    day: date
    lines: int


class AuthorSummary(BaseModel):
    """Contribution statistics of one (normalized) author."""

    author: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    average_lines_per_commit: float = 0.0
    commit_share: float = Field(default=0.0, description="Share of all commits (%)")
    line_share: float = Field(default=0.0, description="Share of all lines changed (%)")

    @computed_field
    @property
    def lines_changed(self) -> int:
        return self.additions + self.deletions


class CommitStatistics(BaseModel):
    """Aggregated view over every stored commit of a repository."""

    daily_series: List[DailyLinePoint] = Field(default_factory=list)
    authors: List[AuthorSummary] = Field(default_factory=list)
    total_commits: int = 0
    total_lines: int = 0


# SQLAlchemy Models for Database
class CommitModel(Base):
    """SQLAlchemy model for tracked repository commits."""

    __tablename__ = "repo_commits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sha = Column(String(64), nullable=False, unique=True, index=True)
    repository = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False, default=UNKNOWN_AUTHOR)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    additions = Column(Integer, nullable=False, default=0)
    deletions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("idx_repo_commits_repository_timestamp", "repository", "timestamp"),
    )


class ModelConverter:
    """Utility class for converting between Pydantic and SQLAlchemy models."""

    @staticmethod
    def commit_to_model(commit: CommitCreate) -> CommitModel:
        """Convert Pydantic CommitCreate to SQLAlchemy CommitModel."""
        return CommitModel(
            sha=commit.sha,
            repository=commit.repository,
            author=commit.author,
            timestamp=commit.timestamp,
            additions=commit.additions,
            deletions=commit.deletions,
        )

    @staticmethod
    def model_to_commit(model: CommitModel) -> CommitRecord:
        """Convert SQLAlchemy CommitModel to Pydantic CommitRecord."""
        return CommitRecord(
            id=model.id,
            sha=model.sha,
            repository=model.repository,
            author=model.author,
            timestamp=ensure_utc(model.timestamp),
            additions=model.additions,
            deletions=model.deletions,
            created_at=ensure_utc(model.created_at) if model.created_at else None,
        )


__all__ = [
    "Base",
    "UNKNOWN_AUTHOR",
    "repository_key",
    "ensure_utc",
    "SyncMode",
    "CommitSummary",
    "CommitDetail",
    "CommitBase",
    "CommitCreate",
    "CommitRecord",
    "SyncResult",
    "DailyLinePoint",
    "AuthorSummary",
    "CommitStatistics",
    "CommitModel",
    "ModelConverter",
]
