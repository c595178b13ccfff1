#!/usr/bin/env python3
"""
GitStatViewer CLI Tool
Part of the Repository Tracker Service

This CLI tool starts repository tracking and displays stored commits and
commit statistics. It communicates with the Repository Tracker Service via
HTTP API calls.
"""

import asyncio
import json
import sys
from typing import Any, Dict, List, Optional, Tuple

import click
import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.progress import Progress, SpinnerColumn, TextColumn

from config.settings import get_settings

# Initialize Rich console
console = Console()

TRACK_TIMEOUT = httpx.Timeout(None, connect=5.0)


class ServiceError(Exception):
    """The Repository Tracker Service rejected or failed a request."""


def parse_repository(value: str) -> Tuple[str, str]:
    owner, _, repo = value.strip().partition("/")
    if not owner or not repo or "/" in repo:
        raise click.BadParameter("Repository must be in owner/repo format")
    return owner, repo


class RepoTrackerCLI:
    """CLI interface for the Repository Tracker Service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = base_url or f"http://localhost:{settings.service.port}"
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.service.request_timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.ConnectError:
            raise ServiceError("Could not connect to Repository Tracker Service. Is it running?")
        except httpx.TimeoutException:
            raise ServiceError("Request timed out. The service may be overloaded or unavailable.")
        except httpx.HTTPError as e:
            raise ServiceError(f"Request to {path} failed: {e}")

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", "Unknown error")
            except ValueError:
                detail = response.text or "Unknown error"
            raise ServiceError(f"API Error ({response.status_code}): {detail}")
        return response.json()

    async def track_repo(self, owner: str, repo: str) -> Dict[str, Any]:
        """Start tracking a repository."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Synchronizing {owner}/{repo}...", total=None)
            # The service answers only after the initial sync, which can take minutes
            result = await self._request(
                "POST",
                "/track-repo",
                json={"owner": owner, "repo": repo},
                timeout=TRACK_TIMEOUT,
            )
            progress.update(task, completed=True)
        return result

    async def get_commits(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/commits/{owner}/{repo}")

    async def get_statistics(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._request("GET", f"/statistics/{owner}/{repo}")

    async def get_tracking_status(self) -> Dict[str, Any]:
        return await self._request("GET", "/tracking")


def display_tracking_result(result: Dict[str, Any]):
    """Display the outcome of a tracking request."""
    title = Text("Tracking Started", style="bold green")
    content = (
        f"Repository: {result.get('repository', 'N/A')}\n"
        f"Mode: {result.get('mode', 'N/A')}\n"
        f"New commits: {result.get('inserted', 0)}\n"
        f"Skipped commits: {result.get('skipped', 0)}"
    )
    console.print(Panel(content, title=title, border_style="green"))


def display_commits(commits: List[Dict[str, Any]], limit: int):
    """Display stored commits in a table format."""
    if not commits:
        console.print(Panel("No commits found yet.", title="Commits"))
        return

    table = Table(title="Recent Commits", show_header=True, header_style="bold magenta")
    table.add_column("SHA", style="green", width=10)
    table.add_column("Author", style="yellow")
    table.add_column("Date", style="cyan", width=20)
    table.add_column("+", style="green", justify="right")
    table.add_column("-", style="red", justify="right")

    for commit in commits[:limit]:
        table.add_row(
            commit.get("sha", "N/A")[:8],
            commit.get("author", "N/A"),
            (commit.get("timestamp") or "N/A")[:19],
            f"+{commit.get('additions', 0)}",
            f"-{commit.get('deletions', 0)}",
        )

    console.print(table)


def display_statistics(payload: Dict[str, Any], days: int):
    """Display totals, author contributions and the recent codebase size series."""
    stats = payload.get("statistics", {})
    console.print(
        Panel(
            f"Commits: {stats.get('total_commits', 0)}\n"
            f"Codebase size (net lines): {stats.get('total_lines', 0)}",
            title=Text(payload.get("repository", "Statistics"), style="bold blue"),
            border_style="blue",
        )
    )

    authors = stats.get("authors", [])
    if authors:
        table = Table(title="Authors", show_header=True, header_style="bold magenta")
        table.add_column("Author", style="yellow")
        table.add_column("Commits", justify="right")
        table.add_column("+", style="green", justify="right")
        table.add_column("-", style="red", justify="right")
        table.add_column("Avg lines/commit", justify="right")
        table.add_column("% commits", justify="right")
        table.add_column("% lines", justify="right")
        for author in authors:
            table.add_row(
                author["author"],
                str(author["commits"]),
                str(author["additions"]),
                str(author["deletions"]),
                f"{author['average_lines_per_commit']:.2f}",
                f"{author['commit_share']:.2f}",
                f"{author['line_share']:.2f}",
            )
        console.print(table)

    series = stats.get("daily_series", [])
    if series:
        table = Table(title=f"Codebase Size (last {days} days)", show_header=True)
        table.add_column("Day", style="cyan")
        table.add_column("Lines", justify="right")
        for point in series[-days:]:
            table.add_row(point["day"], str(point["lines"]))
        console.print(table)


def _run(coro_factory):
    async def run():
        try:
            async with RepoTrackerCLI() as cli_tool:
                return await coro_factory(cli_tool)
        except ServiceError as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    return asyncio.run(run())


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """GitStatViewer CLI - Track a GitHub repository and view commit statistics."""
    pass


@cli.command()
@click.argument("repository")
@click.option("--verbose", "-v", is_flag=True, help="Print the raw response")
def track(repository: str, verbose: bool):
    """Start tracking REPOSITORY (owner/repo)."""
    owner, repo = parse_repository(repository)
    result = _run(lambda tool: tool.track_repo(owner, repo))
    display_tracking_result(result)
    if verbose:
        console.print(f"\n[dim]Raw data: {json.dumps(result, indent=2)}[/dim]")


@cli.command()
@click.argument("repository")
@click.option(
    "--limit", "-l", default=5, type=click.IntRange(min=1),
    help="Number of commits to display (default: 5)",
)
def commits(repository: str, limit: int):
    """Display the most recent stored commits of REPOSITORY."""
    owner, repo = parse_repository(repository)
    display_commits(_run(lambda tool: tool.get_commits(owner, repo)), limit)


@cli.command()
@click.argument("repository")
@click.option(
    "--days", "-d", default=14, type=click.IntRange(min=1),
    help="Days of codebase size history to show",
)
def stats(repository: str, days: int):
    """Display commit statistics of REPOSITORY."""
    owner, repo = parse_repository(repository)
    display_statistics(_run(lambda tool: tool.get_statistics(owner, repo)), days)


@cli.command()
def status():
    """Show the tracked repository and polling schedule."""
    data = _run(lambda tool: tool.get_tracking_status())
    tracked = data.get("tracked_repository")
    if tracked:
        console.print(f"[green]Tracking {tracked}[/green]")
    else:
        console.print("[yellow]No repository tracked[/yellow]")
    console.print(
        f"[dim]Scheduler: {'running' if data.get('running') else 'stopped'}, "
        f"interval {data.get('poll_interval')}s, next run {data.get('next_run') or 'N/A'}[/dim]"
    )


if __name__ == "__main__":
    cli()
