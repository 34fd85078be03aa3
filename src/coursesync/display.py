"""Display formatting for courses, materials and sync state.

Builds ``rich`` renderables from the observable state of the managers and the
orchestrator. Nothing here performs I/O or mutates state.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from rich.table import Table
from rich.text import Text

from coursesync.models import Course, Material
from coursesync.sync.orchestrator import SyncOrchestrator
from coursesync.sync.state import CourseSyncState, SyncPhase
from coursesync.utils import format_duration

_PHASE_STYLES = {
    SyncPhase.PENDING: "dim",
    SyncPhase.SYNCING: "yellow",
    SyncPhase.COMPLETED: "green",
    SyncPhase.FAILED: "red",
}


def format_timestamp(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format a timestamp in local time relative to today.

    Args:
        value: Timestamp to format; None renders as 'Never'
        now: Reference time (defaults to the current local time)

    Returns:
        Human-readable string (e.g., "Today at 2:34 PM")

    Examples:
        >>> format_timestamp(None)
        'Never'
    """
    if value is None:
        return "Never"

    local = value.astimezone()
    now = (now or datetime.now()).astimezone()
    time_str = local.strftime("%I:%M %p").lstrip("0")

    days = (now.date() - local.date()).days
    if days == 0:
        return f"Today at {time_str}"
    if days == 1:
        return f"Yesterday at {time_str}"
    return f"{local.strftime('%B %d, %Y')} at {time_str}"


def format_file_size(size_bytes: int) -> str:
    """Format a byte count as B/KB/MB/GB."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def truncate(text: Optional[str], max_length: int = 50) -> str:
    if not text:
        return ""
    text = " ".join(text.split())
    return text[:max_length] + "..." if len(text) > max_length else text


def status_text(state: CourseSyncState) -> Text:
    return Text(state.status.display_name, style=_PHASE_STYLES[state.status.phase])


def course_table(courses: Iterable[Course], last_sync: Optional[datetime] = None) -> Table:
    """Table of courses with code, professor, semester and schedule."""
    courses = list(courses)
    table = Table(
        title=f"Courses ({len(courses)})",
        caption=f"Last synced: {format_timestamp(last_sync)}",
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Professor", style="magenta")
    table.add_column("Semester", style="blue")
    table.add_column("Schedule")

    for course in courses:
        schedule = ""
        if course.schedule is not None:
            schedule = course.schedule.display
        table.add_row(
            course.id,
            course.course_code,
            course.name,
            course.professor or "",
            course.semester or "",
            schedule,
        )
    return table


def material_table(materials: Iterable[Material], title: str = "Materials") -> Table:
    """Table of materials; important items are flagged with a star."""
    materials = list(materials)
    table = Table(title=f"{title} ({len(materials)})")
    table.add_column("", width=1)
    table.add_column("Posted", style="blue", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Author", style="magenta")
    table.add_column("Files", justify="right", style="green")

    for material in materials:
        table.add_row(
            "[yellow]★[/yellow]" if material.is_important else "",
            material.posted_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            truncate(material.title, 60),
            material.author or "",
            str(len(material.attachments)),
        )
    return table


def attachment_table(material: Material) -> Table:
    table = Table(title=f"Attachments of '{truncate(material.title, 40)}'")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Filename", style="cyan")
    table.add_column("Size", justify="right", style="green")
    for attachment in material.attachments:
        table.add_row(attachment.id, attachment.filename, format_file_size(attachment.file_size))
    return table


def sync_state_table(orchestrator: SyncOrchestrator) -> Table:
    """Per-course outcome of the most recent sync attempts.

    Args:
        orchestrator: Orchestrator whose course states are rendered

    Returns:
        Table with one row per course, oldest start first
    """
    table = Table(title=f"Sync: {orchestrator.status_message}")
    table.add_column("Course", style="white")
    table.add_column("Status")
    table.add_column("Duration", justify="right", style="blue")

    for state in orchestrator.course_states():
        table.add_row(state.course_name, status_text(state), format_duration(state.duration))
    return table


def sync_summary(orchestrator: SyncOrchestrator) -> Dict[str, Any]:
    """Counts of completed and failed courses plus the global state."""
    states = orchestrator.course_states()
    return {
        "status": orchestrator.status_message,
        "progress": orchestrator.progress,
        "completed": sum(1 for s in states if s.status.is_completed),
        "failed": sum(1 for s in states if s.status.is_failed),
        "error": orchestrator.error_message,
        "last_sync": format_timestamp(orchestrator.last_global_sync_time),
    }
