"""Tests for display formatting helpers."""

import asyncio
from datetime import datetime, timedelta, timezone

from rich.console import Console

from conftest import make_attachment, make_course, make_material
from coursesync.display import (
    course_table,
    format_file_size,
    format_timestamp,
    material_table,
    sync_state_table,
    sync_summary,
    truncate,
)
from coursesync.errors import ServerError
from coursesync.models import Schedule


def render(renderable) -> str:
    console = Console(width=120, record=True)
    console.print(renderable)
    return console.export_text()


class TestFormatting:
    """Test scalar formatting."""

    def test_timestamp_never(self):
        assert format_timestamp(None) == "Never"

    def test_timestamp_today_and_yesterday(self):
        now = datetime.now(timezone.utc)
        assert format_timestamp(now, now=now).startswith("Today at ")
        assert format_timestamp(now - timedelta(days=1), now=now).startswith("Yesterday at ")

    def test_timestamp_older(self):
        now = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
        text = format_timestamp(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc), now=now)
        assert "2024" in text

    def test_file_size(self):
        assert format_file_size(512) == "512 B"
        assert format_file_size(2048) == "2.0 KB"
        assert format_file_size(5 * 1024 * 1024) == "5.0 MB"
        assert format_file_size(3 * 1024**3) == "3.0 GB"

    def test_truncate(self):
        assert truncate(None) == ""
        assert truncate("a  b\nc") == "a b c"
        assert truncate("x" * 60, 10) == "x" * 10 + "..."


class TestTables:
    """Test rich tables."""

    def test_course_table(self):
        course = make_course("c1", "Algorithms", professor="Kim", schedule=Schedule(3, "13:00", "14:30"))
        text = render(course_table([course]))
        assert "Algorithms" in text
        assert "Wed 13:00-14:30" in text
        assert "Courses (1)" in text

    def test_material_table_flags_important(self):
        materials = [
            make_material("m1", title="Notice", is_important=True, attachments=(make_attachment("a1"),)),
            make_material("m2", title="Slides"),
        ]
        text = render(material_table(materials, title="Algorithms"))
        assert "Algorithms (2)" in text
        assert "★" in text

    def test_sync_state_table(self, remote, orchestrator):
        remote.courses = [make_course("c1", "Algorithms"), make_course("c2", "Databases")]
        remote.material_errors["c2"] = ServerError(500)
        asyncio.run(orchestrator.sync_all())

        text = render(sync_state_table(orchestrator))
        assert "Completed" in text
        assert "Failed: Server error (code: 500)" in text

        summary = sync_summary(orchestrator)
        assert summary["completed"] == 1
        assert summary["failed"] == 1
        assert summary["error"] is None
