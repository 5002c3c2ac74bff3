"""Tests for backup, CSV and calendar export."""

import io
import json

import pandas as pd
import pytest

from conftest import MONDAY
from planner_core import default_store
from planner_export import (
    agenda_events,
    build_ics_calendar,
    export_backup,
    export_collections_csv,
    import_backup,
)


@pytest.fixture
def data():
    d = default_store(MONDAY)
    d["courses"] = [{"id": 1, "title": "Chem", "teacher": "Dr. R", "days": ["Monday", "Wednesday"], "start": "09:00", "end": "10:00"}]
    d["assignments"] = [
        {"id": 2, "title": "PS1", "course": "Chem", "dueDate": "2026-10-21", "priority": "Normal", "completed": False},
        {"id": 3, "title": "Old", "course": "Chem", "dueDate": "2026-10-01", "priority": "Normal", "completed": True},
        {"id": 4, "title": "Someday", "course": "", "dueDate": "", "priority": "Normal", "completed": False},
    ]
    d["exams"] = [{"id": 5, "title": "Midterm", "course": "Chem", "date": "2026-10-30", "time": "09:00", "completed": False}]
    return d


class TestBackup:
    """Tests for the JSON backup."""

    def test_backup_restores(self, data) -> None:
        assert import_backup(export_backup(data)) == data

    def test_non_object_rejected(self) -> None:
        with pytest.raises(ValueError):
            import_backup(json.dumps([1, 2]))

    def test_invalid_json_rejected(self) -> None:
        with pytest.raises(ValueError):
            import_backup("{nope")


class TestCsv:
    """Tests for per-collection CSV export."""

    def test_one_csv_per_collection(self, data) -> None:
        out = export_collections_csv(data)

        assert set(out) == {"courses", "assignments", "exams", "habits", "tasks", "notes"}

    def test_course_days_joined(self, data) -> None:
        df = pd.read_csv(io.StringIO(export_collections_csv(data)["courses"]))

        assert list(df.columns) == ["id", "title", "teacher", "days", "start", "end"]
        assert df.loc[0, "days"] == "Monday, Wednesday"


class TestCalendar:
    """Tests for the ICS export."""

    def test_events_skip_undated_and_completed(self, data) -> None:
        titles = [e["title"] for e in agenda_events(data)]

        assert titles == ["Assignment: PS1 · Chem", "Exam: Midterm · Chem at 09:00"]

    def test_include_completed(self, data) -> None:
        titles = [e["title"] for e in agenda_events(data, include_completed=True)]

        assert "Assignment: Old · Chem" in titles

    def test_ics_all_day_events(self, data) -> None:
        ics = build_ics_calendar(agenda_events(data))

        assert ics.startswith("BEGIN:VCALENDAR")
        assert ics.endswith("END:VCALENDAR\r\n")
        assert ics.count("BEGIN:VEVENT") == 2
        assert "DTSTART;VALUE=DATE:20261030" in ics
        assert "DTEND;VALUE=DATE:20261031" in ics
        assert "UID:sp-exam-5@studentplanner" in ics

    def test_ics_lines_end_in_crlf(self, data) -> None:
        ics = build_ics_calendar(agenda_events(data))

        assert "\n" not in ics.replace("\r\n", "")
        assert "BEGIN:VCALENDAR\r\nVERSION:2.0\r\n" in ics

    def test_ics_escapes_text(self) -> None:
        ics = build_ics_calendar([{"title": "a, b; c", "date": MONDAY}], calendar_name="Mine")

        assert "SUMMARY:a\\, b\\; c" in ics
        assert "X-WR-CALNAME:Mine" in ics
