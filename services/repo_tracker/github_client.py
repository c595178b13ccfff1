"""
GitHub commit source for the repository tracker.

Wraps the commit-listing and commit-detail endpoints of the GitHub REST API.
Authentication headers and upstream timeouts live here, not in the sync core.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from config.settings import settings
from shared.exceptions import GitHubAPIError
from shared.models import CommitDetail, CommitSummary

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable commit date: {value!r}")
        return None


def _author_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    author = (payload.get("commit") or {}).get("author") or {}
    return {
        "author_name": author.get("name"),
        "authored_date": _parse_date(author.get("date")),
    }


class GitHubCommitSource:
    """Remote commit source backed by the GitHub REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.github.api_base_url).rstrip("/")
        if token is None and settings.github.access_token is not None:
            token = settings.github.access_token.get_secret_value()
        self.token = token
        self.timeout = timeout or settings.github.timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": settings.github.user_agent,
        }
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                transport=self._transport,
            )
            logger.debug("Created GitHub HTTP client")
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed GitHub HTTP client")

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            reset = response.headers.get("X-RateLimit-Reset")
            message = response.reason_phrase
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message", message)
            raise GitHubAPIError(
                f"GitHub API error {response.status_code} for {path}: {message}",
                status_code=response.status_code,
                rate_limit_reset=int(reset) if reset and reset.isdigit() else None,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(f"Malformed JSON from {path}") from e

    async def list_commits(
        self, owner: str, name: str, page: int = 1, per_page: int = 30
    ) -> List[CommitSummary]:
        """
        List default-branch commits, newest first.

        A page shorter than ``per_page`` means the history is exhausted.
        """
        data = await self._get(
            f"/repos/{owner}/{name}/commits", params={"page": page, "per_page": per_page}
        )
        if not isinstance(data, list):
            raise GitHubAPIError(f"Unexpected commit listing payload for {owner}/{name}")

        summaries = []
        for item in data:
            if not isinstance(item, dict) or not item.get("sha"):
                raise GitHubAPIError(f"Commit listing entry without sha for {owner}/{name}")
            summaries.append(CommitSummary(sha=item["sha"], **_author_fields(item)))
        return summaries

    async def get_commit_detail(self, owner: str, name: str, sha: str) -> CommitDetail:
        """Fetch one commit with its line statistics (0/0 when GitHub omits them)."""
        data = await self._get(f"/repos/{owner}/{name}/commits/{sha}")
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected commit payload for {sha}")

        stats = data.get("stats") or {}
        return CommitDetail(
            sha=data.get("sha") or sha,
            additions=stats.get("additions") or 0,
            deletions=stats.get("deletions") or 0,
            **_author_fields(data),
        )
