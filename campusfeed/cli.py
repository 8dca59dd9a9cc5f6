"""Command-line interface for CampusFeed.

A developer console over the data layer: browse the feed as it would be laid
out in the masonry grid, work through the moderation queue, and inspect the
active configuration.

Commands:
- feed: List approved posts with their masonry column placement
- pending: List posts waiting for review (admin)
- review: Approve or reject a pending post (admin)
- stats: Platform totals (admin) or one user's totals
- config: Show the active settings

Example:
    $ campusfeed feed --category food --width 1024
    $ campusfeed pending --as-user u_admin
    $ campusfeed review p4 --approve --as-user u_admin
    $ campusfeed stats --as-user u_admin
    $ campusfeed config
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from campusfeed.auth import AuthService, AuthSession
from campusfeed.config import settings
from campusfeed.errors import AppError
from campusfeed.logging import logger, setup_logging
from campusfeed.masonry import (
    HeightBounds,
    breakpoint_for_width,
    estimate_post_card_height,
    layout_masonry,
    resolve_columns,
)
from campusfeed.moderation import ModerationService
from campusfeed.repository import Repositories, RepositoryFactory
from campusfeed.storage import ClientStateStore
from campusfeed.utils import format_iso, redact_token

T = TypeVar("T")

# Initialize CLI app
app = typer.Typer(
    name="campusfeed",
    help="Campus food feed: browse, lay out and moderate posts",
    add_completion=False,
)
console = Console()

FEED_COLUMNS = {"base": 2, "md": 2, "lg": 3, "xl": 4}


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Re-configure logging for interactive use."""
    setup_logging("DEBUG" if verbose else None)


def run_async(coro: Awaitable[T]) -> T:
    """Run async coroutine in event loop."""
    return asyncio.run(coro)  # type: ignore[arg-type]


async def open_repositories(as_user: Optional[str] = None) -> Repositories:
    """Build the configured repository family and resolve the viewer.

    In mock mode ``as_user`` signs in as a seed account. Against the real
    backend the persisted session token is used instead.
    """
    store = None if settings.use_mock else ClientStateStore()
    if store is not None:
        store.initialize()

    session = AuthSession(store)
    repos = RepositoryFactory(session=session).build()

    if settings.use_mock:
        if as_user:
            session.sign_in(repos.auth.issue_token(as_user))  # type: ignore[attr-defined]
    else:
        if as_user:
            logger.warning("--as-user only applies to mock mode; using the stored session")
        await AuthService(repos.auth, session).restore()
    return repos


def run_with_repositories(
    as_user: Optional[str], action: Callable[[Repositories], Awaitable[T]]
) -> T:
    """Open repositories, run ``action`` and exit with code 1 on AppError."""

    async def _run() -> T:
        repos = await open_repositories(as_user)
        try:
            async with repos:
                return await action(repos)
        finally:
            if repos.session.store is not None:
                repos.session.store.close()

    try:
        return run_async(_run())
    except AppError as e:
        console.print(f"\n❌ [bold red]{type(e).__name__}: {e}[/bold red]")
        raise typer.Exit(code=1) from e


def _viewer_label(repos: Repositories) -> str:
    user = repos.session.user
    return f"{user.name} ({user.role})" if user else "anonymous"


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def feed(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="food or recipe"),
    post_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="share, seeking or companion"
    ),
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags"),
    q: Optional[str] = typer.Option(None, "--search", "-q", help="Keyword in title or content"),
    sort_by: str = typer.Option("latest", "--sort", help="latest, hot or trending"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int = typer.Option(20, "--limit", "-l", help="Page size (max 50)"),
    columns: Optional[int] = typer.Option(
        None, "--columns", help="Fixed column count (overrides --width)"
    ),
    width: int = typer.Option(375, "--width", "-w", help="Viewport width used to pick columns"),
    gap: float = typer.Option(8, "--gap", help="Vertical gap between cards"),
    as_user: Optional[str] = typer.Option(None, "--as-user", "-u", help="Seed user id (mock mode)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List approved posts and show where each lands in the masonry grid.

    Examples:
        $ campusfeed feed --sort hot
        $ campusfeed feed --tags spicy,noodles --width 1280
    """
    configure_logging(verbose)

    filters = {
        "category": category,
        "post_type": post_type,
        "tags": tags,
        "q": q,
        "sort_by": sort_by,
    }

    async def _feed(repos: Repositories) -> Any:
        return await repos.posts.list_posts(filters, page=page, limit=limit)

    result = run_with_repositories(as_user, _feed)

    column_count = columns if columns is not None else resolve_columns(
        FEED_COLUMNS, breakpoint_for_width(width)
    )
    bounds = HeightBounds.from_settings()
    layout = layout_masonry(
        result.items,
        column_count,
        gap=gap,
        estimate_height=lambda post: estimate_post_card_height(post, bounds),
    )

    table = Table(title=f"Feed (page {result.pagination.page}/{result.pagination.total_pages})")
    table.add_column("Col", justify="right", style="magenta")
    table.add_column("Top", justify="right")
    table.add_column("Height", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Title")
    table.add_column("Likes", justify="right", style="green")

    for placement in sorted(layout.placements, key=lambda p: (p.column, p.top)):
        post = result.items[placement.index]
        table.add_row(
            str(placement.column + 1),
            f"{placement.top:g}",
            f"{placement.height:g}",
            post.id,
            post.post_type,
            post.title,
            str(post.stats.like_count),
        )

    console.print(table)
    console.print(
        f"📐 {column_count} columns, total height [yellow]{layout.total_height:g}[/yellow], "
        f"{result.pagination.total} posts"
    )


@app.command()
def pending(
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: int = typer.Option(20, "--limit", "-l", help="Page size (max 50)"),
    as_user: Optional[str] = typer.Option(None, "--as-user", "-u", help="Seed user id (mock mode)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List posts waiting for review (requires an admin viewer)."""
    configure_logging(verbose)

    async def _pending(repos: Repositories) -> Any:
        console.print(f"🔍 Moderation queue as [yellow]{_viewer_label(repos)}[/yellow]\n")
        service = ModerationService(repos.admin, repos.session)
        return await service.list_pending_posts(page=page, limit=limit)

    result = run_with_repositories(as_user, _pending)

    if not result.items:
        console.print("✅ [bold green]Nothing to review[/bold green]")
        return

    table = Table(title=f"Pending posts ({result.pagination.total})")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Author")
    table.add_column("Title")
    table.add_column("Submitted")

    for post in result.items:
        table.add_row(
            post.id,
            post.post_type,
            post.author.name,
            post.title,
            format_iso(post.updated_at or post.created_at) or "-",
        )
    console.print(table)


@app.command()
def review(
    post_id: str = typer.Argument(..., help="Post to review"),
    approve: bool = typer.Option(
        True, "--approve/--reject", help="Approve (default) or reject the post"
    ),
    feedback: Optional[str] = typer.Option(None, "--feedback", "-f", help="Note for the author"),
    as_user: Optional[str] = typer.Option(None, "--as-user", "-u", help="Seed user id (mock mode)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Approve or reject a pending post (requires an admin viewer).

    Examples:
        $ campusfeed review p4 --approve --as-user u_admin
        $ campusfeed review p8 --reject -f "Add a meeting time" --as-user u_admin
    """
    configure_logging(verbose)

    async def _review(repos: Repositories) -> Any:
        service = ModerationService(repos.admin, repos.session)
        if approve:
            return await service.approve(post_id, feedback)
        return await service.reject(post_id, feedback)

    result = run_with_repositories(as_user, _review)

    icon = "✅" if result["status"] == "approved" else "🚫"
    console.print(
        f"{icon} Post [cyan]{result['post_id']}[/cyan] is now "
        f"[bold]{result['status']}[/bold] (reviewed at {result['reviewed_at']})"
    )


@app.command()
def stats(
    user_id: Optional[str] = typer.Option(
        None, "--user", help="Show this user's totals instead of the platform's"
    ),
    as_user: Optional[str] = typer.Option(None, "--as-user", "-u", help="Seed user id (mock mode)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show platform totals (requires an admin viewer) or one user's totals.

    Examples:
        $ campusfeed stats --as-user u_admin
        $ campusfeed stats --user u1
    """
    configure_logging(verbose)

    async def _stats(repos: Repositories) -> Any:
        if user_id:
            return await repos.users.get_user_stats(user_id)
        return await ModerationService(repos.admin, repos.session).get_platform_stats()

    result = run_with_repositories(as_user, _stats)

    table = Table(title=f"Stats for {user_id}" if user_id else "Platform stats", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="yellow")
    for key, value in result.items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                table.add_row(f"{key}.{sub_key}", str(sub_value))
        else:
            table.add_row(key, str(value))
    console.print(table)


@app.command()
def config() -> None:
    """Show the active configuration with the session token redacted."""
    table = Table(title="Configuration", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")

    table.add_row("Environment", str(settings.environment))
    table.add_row("Repositories", "in-memory (mock)" if settings.use_mock else "HTTP")
    table.add_row("API Base URL", settings.api_base_url)
    table.add_row("Request Timeout", f"{settings.request_timeout_ms} ms")
    table.add_row("Mock Latency", f"{settings.mock_latency_ms} ms")
    table.add_row("Page Size", f"{settings.default_page_size} (max {settings.max_page_size})")
    table.add_row(
        "Card Height", f"{settings.waterfall_min_height}-{settings.waterfall_max_height}"
    )
    table.add_row("State Store", settings.state_db_url)
    table.add_row("Log Level", settings.log_level)

    token = None
    if not settings.use_mock:
        with ClientStateStore() as store:
            token = store.get_token()
    table.add_row("Session Token", redact_token(token))

    console.print(table)


__all__ = ["app"]
