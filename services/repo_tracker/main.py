"""
Repository Tracker Service for GitStatViewer.

This service provides:
- Tracking of a single GitHub repository (full backfill or incremental top-up)
- Periodic polling of the tracked repository for new commits
- Raw commit listing and aggregated commit statistics
- Health and tracking status endpoints
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config.settings import settings
from shared.database import CommitRepository, DatabaseManager, db_manager, init_database
from shared.exceptions import ConflictError, SyncError
from shared.models import CommitRecord, CommitStatistics, SyncResult, repository_key
from services.repo_tracker.aggregator import aggregate
from services.repo_tracker.github_client import GitHubCommitSource
from services.repo_tracker.poller import CommitPoller
from services.repo_tracker.reconciler import Reconciler
from services.repo_tracker.tracking import TrackingSession

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.monitoring.log_level),
    format=settings.monitoring.log_format,
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Repository Tracker Service",
    description="GitHub repository commit tracking and statistics service",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RepoTrackerService:
    """Wires the commit store, the GitHub source, the reconciler and the poller."""

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        source: Optional[GitHubCommitSource] = None,
    ):
        self.db = db or db_manager
        self.source = source or GitHubCommitSource()
        self.store = CommitRepository(self.db)
        self.session = TrackingSession()
        self.reconciler = Reconciler(self.source, self.store, self.session)
        self.poller = CommitPoller(self.reconciler, self.session)

    async def initialize(self):
        """Initialize the service."""
        await init_database(self.db)
        self.poller.start()
        logger.info("Repository tracker service initialized successfully")

    async def close(self):
        """Close service connections."""
        self.poller.stop()
        await self.source.close()
        await self.db.close()
        logger.info("Repository tracker service connections closed")

    async def start_tracking(self, owner: str, name: str) -> SyncResult:
        """Reconcile a repository and register it for polling."""
        return await self.reconciler.reconcile(owner, name)

    async def get_commits(self, owner: str, name: str) -> List[CommitRecord]:
        """Stored commits of a repository, newest first."""
        commits = await self.store.list_by_repository(repository_key(owner, name))
        return sorted(commits, key=lambda c: c.timestamp, reverse=True)

    async def get_statistics(self, owner: str, name: str) -> CommitStatistics:
        """Aggregated statistics over every stored commit of a repository."""
        commits = await self.store.list_by_repository(repository_key(owner, name))
        return aggregate(commits)

    def tracking_status(self) -> Dict[str, Any]:
        return self.poller.status()


# Service instance
repo_tracker_service = RepoTrackerService()


# Request/Response models
class TrackRepoRequest(BaseModel):
    """Request model for tracking a repository."""
    owner: Optional[str] = Field(None, description="Repository owner")
    repo: Optional[str] = Field(None, description="Repository name")

    model_config = {
        "json_schema_extra": {
            "example": {"owner": "PatrickAbildHolmes", "repo": "i4-simulated-lab"}
        }
    }


class TrackRepoResponse(BaseModel):
    """Response model for a successful tracking request."""
    message: str
    repository: str
    mode: str
    inserted: int
    skipped: int


class StatisticsResponse(BaseModel):
    """Response model for commit statistics."""
    repository: str
    statistics: CommitStatistics
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# API endpoints
@app.on_event("startup")
async def startup_event():
    """Initialize service on startup."""
    await repo_tracker_service.initialize()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await repo_tracker_service.close()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    db_health = await repo_tracker_service.db.health_check()
    scheduler = repo_tracker_service.tracking_status()
    healthy = db_health["status"] == "healthy"

    content = {
        "status": "healthy" if healthy else "unhealthy",
        "service": "repo_tracker",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_health["status"],
        "scheduler": "running" if scheduler["running"] else "stopped",
    }
    return JSONResponse(status_code=200 if healthy else 503, content=content)


@app.post("/track-repo", response_model=TrackRepoResponse)
async def track_repo(request: TrackRepoRequest):
    """Start tracking a repository, backfilling or topping up its history first."""
    if not request.owner or not request.repo:
        raise HTTPException(status_code=400, detail="Owner and repo required")

    try:
        result = await repo_tracker_service.start_tracking(request.owner, request.repo)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SyncError:
        raise HTTPException(status_code=500, detail="Tracking failed")

    return TrackRepoResponse(
        message=f"Tracking started for {result.repository}",
        repository=result.repository,
        mode=result.mode,
        inserted=result.inserted,
        skipped=result.skipped,
    )


@app.get("/commits/{owner}/{repo}", response_model=List[CommitRecord])
async def get_commits(owner: str, repo: str):
    """Get every stored commit of a repository, newest first."""
    return await repo_tracker_service.get_commits(owner, repo)


@app.get("/statistics/{owner}/{repo}", response_model=StatisticsResponse)
async def get_statistics(owner: str, repo: str):
    """Get aggregated commit statistics of a repository."""
    statistics = await repo_tracker_service.get_statistics(owner, repo)
    return StatisticsResponse(repository=f"{owner}/{repo}", statistics=statistics)


@app.get("/tracking")
async def get_tracking_status():
    """Get the tracked repository and polling schedule."""
    return repo_tracker_service.tracking_status()
