"""Main CLI entry point for coursesync.

Provides command-line access to login, course and material browsing, sync
runs and cache maintenance.
"""

import asyncio
import logging
import shutil
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from coursesync.app import CourseSyncApp
from coursesync.display import (
    attachment_table,
    course_table,
    format_timestamp,
    material_table,
    sync_state_table,
    sync_summary,
)
from coursesync.errors import CourseSyncError, NotFound
from coursesync.managers.material_manager import MaterialSortOption
from coursesync.utils import GLOBAL_SCOPE

# Global console for Rich output
console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def get_app(ctx: click.Context) -> CourseSyncApp:
    """Return the application for this invocation, building it on first use.

    An application placed in ``ctx.obj['app']`` before invocation is used
    as is.
    """
    app = ctx.obj.get("app")
    if app is None:
        app = CourseSyncApp.from_config_file(ctx.obj.get("config"))
        ctx.obj["app"] = app
    return app


def fail(message: str) -> None:
    console.print(f"[red]✗[/red] Error: {message}", style="red")
    sys.exit(1)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to a JSON config file (default: ~/.coursesync_cache/config.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """coursesync - Keep an offline copy of your courses and materials.

    Settings come from --config, then COURSESYNC_* environment variables.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    configure_logging(verbose)


# ==================== Authentication ====================


@cli.command()
@click.argument("user_id")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx, user_id, password):
    """Log in and store the session in the system keyring.

    Example:
        coursesync login s1234567
    """
    app = get_app(ctx)
    if not asyncio.run(app.auth.login(user_id, password)):
        fail(app.auth.error_message)

    user = app.auth.current_user
    console.print(f"[green]✓[/green] Logged in as {user.eclass_username} ({user.email})")


@cli.command()
@click.pass_context
def logout(ctx):
    """Forget the session and drop all cached course data."""
    app = get_app(ctx)
    app.auth.logout()
    console.print("[green]✓[/green] Logged out")


@cli.command()
@click.pass_context
def whoami(ctx):
    """Show the logged-in user."""
    app = get_app(ctx)
    if not app.auth.is_authenticated:
        fail("Please log in.")

    user = asyncio.run(app.auth.refresh_user())
    if user is None:
        fail(app.auth.error_message or "Please log in.")

    console.print(f"[bold]User:[/bold] {user.eclass_username}")
    console.print(f"[bold]Email:[/bold] {user.email}")
    console.print(f"[bold]ID:[/bold] {user.id}")


# ==================== Browsing ====================


@cli.command()
@click.option("--refresh", "-r", is_flag=True, help="Fetch from the server even if cached")
@click.pass_context
def courses(ctx, refresh):
    """List courses, from the cache when available.

    Example:
        coursesync courses --refresh
    """
    app = get_app(ctx)
    manager = app.course_manager
    asyncio.run(manager.load_courses(force_refresh=refresh))

    if manager.error_message:
        console.print(f"[yellow]![/yellow] {manager.error_message}")

    if not manager.courses:
        if manager.error_message:
            sys.exit(1)
        console.print("[yellow]No courses found[/yellow]")
        return

    console.print(course_table(manager.courses, manager.last_courses_sync))


@cli.command()
@click.argument("course_id")
@click.option("--search", "-s", default="", help="Case-insensitive text filter")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice([option.value for option in MaterialSortOption]),
    default=MaterialSortOption.DATE_DESCENDING.value,
    show_default=True,
    help="Ordering of the list",
)
@click.option("--important-only", is_flag=True, help="Only materials flagged important")
@click.option("--refresh", "-r", is_flag=True, help="Ask the server to re-crawl the course")
@click.option("--show-attachments", "-a", is_flag=True, help="List attachments per material")
@click.pass_context
def materials(ctx, course_id, search, sort_by, important_only, refresh, show_attachments):
    """List the materials of one course.

    Example:
        coursesync materials c-101 --search exam --sort important_first
    """
    app = get_app(ctx)
    manager = app.material_manager

    async def load():
        if refresh:
            outcome = await manager.refresh_materials_with_status(course_id)
            if outcome is not None:
                console.print(
                    f"[green]✓[/green] Refreshed: {outcome.new_items} new of {outcome.total}"
                )
        await manager.load_materials(course_id)

    asyncio.run(load())

    error = manager.error_for(course_id)
    if error:
        console.print(f"[yellow]![/yellow] {error}")

    items = manager.filtered_materials(
        course_id,
        search_text=search,
        sort_by=MaterialSortOption(sort_by),
        important_only=important_only,
    )
    if not items:
        if error and not manager.materials_for(course_id):
            sys.exit(1)
        console.print("[yellow]No materials found[/yellow]")
        return

    course = app.course_manager.get_course(course_id)
    title = course.name if course is not None else course_id
    console.print(material_table(items, title=title))
    if show_attachments:
        for material in items:
            if material.attachments:
                console.print(attachment_table(material))


@cli.command()
@click.argument("attachment_id")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Where to save the file (default: the download directory)",
)
@click.pass_context
def download(ctx, attachment_id, output):
    """Download one attachment."""
    app = get_app(ctx)
    try:
        path = asyncio.run(app.remote.download_attachment(attachment_id))
    except NotFound:
        fail(f"Attachment not found: {attachment_id}")
    except CourseSyncError as e:
        fail(str(e))

    if output:
        target = Path(output)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(path), str(target))
        path = target

    console.print(f"[green]✓[/green] Saved to {path}")


# ==================== Sync ====================


@cli.command()
@click.option("--course", "course_id", help="Sync only this course")
@click.pass_context
def sync(ctx, course_id):
    """Synchronize courses and materials with the server.

    Example:
        coursesync sync
        coursesync sync --course c-101
    """
    app = get_app(ctx)
    orchestrator = app.orchestrator

    if course_id:
        asyncio.run(orchestrator.sync_one(course_id))
    else:
        asyncio.run(orchestrator.sync_all())

    if orchestrator.course_states():
        console.print(sync_state_table(orchestrator))

    summary = sync_summary(orchestrator)
    if summary["error"]:
        fail(summary["error"])

    if course_id:
        state = orchestrator.get_course_sync(course_id)
        if state is not None and state.status.is_failed:
            fail(state.status.reason)
        console.print(f"[green]✓[/green] Synced {state.course_name if state else course_id}")
        return

    console.print(
        f"[green]✓[/green] {summary['status']}: {summary['completed']} ok, "
        f"{summary['failed']} failed"
    )


@cli.command()
@click.pass_context
def status(ctx):
    """Show cached data and when it was last synchronized."""
    app = get_app(ctx)
    orchestrator = app.orchestrator
    course_manager = app.course_manager

    console.print(f"\n[bold cyan]Status: {orchestrator.status_message}[/bold cyan]")
    console.print("=" * 60)
    last_sync = format_timestamp(orchestrator.last_global_sync_time)
    console.print(f"[bold]Last full sync:[/bold] {last_sync}")
    console.print(
        f"[bold]Logged in:[/bold] {'yes' if app.auth.is_authenticated else 'no'}"
    )

    stale = course_manager.is_stale(GLOBAL_SCOPE)
    console.print(
        f"[bold]Courses cached:[/bold] {len(course_manager.courses)}"
        + (" [yellow](stale)[/yellow]" if stale else "")
    )

    if not course_manager.courses:
        return

    table = Table(title="Cached materials")
    table.add_column("Course", style="white")
    table.add_column("Materials", justify="right", style="green")
    table.add_column("Cached", style="blue")
    table.add_column("Fresh")

    for course in course_manager.courses:
        cached = app.material_repository.cached(course.id)
        timestamp = app.material_repository.cache_timestamp(course.id)
        fresh = not app.material_repository.is_stale(course.id)
        table.add_row(
            course.name,
            str(len(cached)),
            format_timestamp(timestamp),
            "[green]yes[/green]" if fresh else "[yellow]no[/yellow]",
        )
    console.print(table)


# ==================== Cache Commands ====================


@cli.group()
def cache():
    """Inspect or clear the local cache."""
    pass


@cache.command("info")
@click.pass_context
def cache_info(ctx):
    """Show cache location and contents."""
    app = get_app(ctx)
    stats = app.cache.get_stats()

    console.print(f"[bold]Cache root:[/bold] {stats['root']}")
    console.print(f"[bold]Default TTL:[/bold] {app.cache.default_ttl}s")

    keys = stats["keys"]
    if not keys:
        console.print("[yellow]Cache is empty[/yellow]")
        return

    table = Table(title=f"Cached keys ({len(keys)})")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Stored", style="blue")
    table.add_column("TTL left", justify="right", style="green")
    for key in keys:
        table.add_row(
            key,
            format_timestamp(app.cache.timestamp_of(key)),
            f"{app.cache.ttl_remaining(key)}s",
        )
    console.print(table)


@cache.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cache_clear(ctx, yes):
    """Delete all cached courses and materials."""
    if not yes:
        click.confirm("Delete all cached course data?", abort=True)
    app = get_app(ctx)
    app.clear_cached_data()
    console.print("[green]✓[/green] Cache cleared")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
