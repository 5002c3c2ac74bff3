"""Tests for the render model: schedule views, upcoming list, habits and dashboard."""

import datetime

from conftest import MONDAY, at
from planner_core import (
    EntityKind,
    ViewMode,
    WEEKDAYS,
    agenda_items,
    build_dashboard,
    build_schedule,
    clock_labels,
    default_store,
    habit_rows,
    upcoming_items,
)


def _data(**collections):
    data = default_store(MONDAY)
    data.update(collections)
    return data


COURSES = [
    {"id": 1, "title": "Bio", "teacher": "Dr. B", "days": ["Monday", "Saturday"], "start": "13:00", "end": "14:00"},
    {"id": 2, "title": "Chem", "teacher": "Dr. R", "days": ["Monday"], "start": "09:00", "end": "10:00"},
    {"id": 3, "title": "Art", "teacher": "Ms. A", "days": ["Tuesday"], "start": "08:00", "end": "09:00"},
]


def _assignment(i, due, **kw):
    item = {"id": i, "title": f"A{i}", "course": "Chem", "dueDate": due, "priority": "Normal", "completed": False}
    item.update(kw)
    return item


class TestDayAndWeek:
    """Tests for the course-grid views."""

    def test_day_view_filters_and_sorts(self) -> None:
        """Day shows only today's courses, earliest first."""
        model = build_schedule(_data(courses=COURSES), ViewMode.DAY, MONDAY)

        assert model.title == "Today's Schedule"
        assert len(model.columns) == 1
        assert model.columns[0].weekday == "Monday"
        assert [c["title"] for c in model.columns[0].courses] == ["Chem", "Bio"]

    def test_day_view_with_no_courses(self) -> None:
        """An empty day still has its column."""
        model = build_schedule(_data(courses=COURSES), ViewMode.DAY, MONDAY + datetime.timedelta(days=2))

        assert model.columns[0].weekday == "Wednesday"
        assert model.columns[0].courses == []

    def test_week_view_has_seven_ordered_columns(self) -> None:
        """Monday through Sunday, each with its own courses."""
        model = build_schedule(_data(courses=COURSES), ViewMode.WEEK, MONDAY)

        assert model.title == "Weekly Schedule"
        assert [c.weekday for c in model.columns] == WEEKDAYS
        by_day = {c.weekday: [x["title"] for x in c.courses] for c in model.columns}
        assert by_day["Monday"] == ["Chem", "Bio"]
        assert by_day["Tuesday"] == ["Art"]
        assert by_day["Saturday"] == ["Bio"]
        assert by_day["Sunday"] == []

    def test_weekend_columns_use_weekend_icon(self) -> None:
        model = build_schedule(_data(), ViewMode.WEEK, MONDAY)
        icons = {c.weekday: c.empty_icon for c in model.columns}

        assert icons["Saturday"] == icons["Sunday"] == "weekend"
        assert icons["Monday"] == "event_busy"

    def test_week_view_ignores_agenda(self) -> None:
        model = build_schedule(_data(assignments=[_assignment(1, "2026-10-20")]), ViewMode.WEEK, MONDAY)

        assert model.agenda == []


class TestAgenda:
    """Tests for the merged assignment and exam list."""

    def test_month_and_year_show_the_same_agenda(self) -> None:
        """The two views differ only by label and icon."""
        data = _data(
            assignments=[_assignment(1, "2026-11-01"), _assignment(2, "2026-10-21")],
            exams=[{"id": 3, "title": "Final", "course": "Bio", "date": "2026-12-10", "time": "09:00", "completed": False}],
        )

        month = build_schedule(data, ViewMode.MONTH, MONDAY)
        year = build_schedule(data, ViewMode.YEAR, MONDAY)

        assert month.agenda == year.agenda
        assert [x.title for x in month.agenda] == ["A2", "A1", "Final"]
        assert (month.title, month.icon) == ("Month Overview", "calendar_month")
        assert (year.title, year.icon) == ("Year Overview", "view_timeline")

    def test_exam_fields(self) -> None:
        data = _data(exams=[{"id": 3, "title": "Final", "course": "Bio", "date": "2026-12-10", "time": "09:00", "completed": False}])

        (item,) = agenda_items(data, MONDAY)

        assert item.kind == EntityKind.EXAM
        assert item.due == datetime.date(2026, 12, 10)
        assert item.time == "09:00"

    def test_undated_items_sort_last(self) -> None:
        """Entries without a parseable date go to the end, in insertion order."""
        data = _data(assignments=[_assignment(1, ""), _assignment(2, "2026-10-25"), _assignment(3, "someday")])

        assert [x.id for x in agenda_items(data, MONDAY)] == [2, 1, 3]

    def test_equal_dates_keep_insertion_order(self) -> None:
        data = _data(assignments=[_assignment(1, "2026-10-25"), _assignment(2, "2026-10-25")])

        assert [x.id for x in agenda_items(data, MONDAY)] == [1, 2]

    def test_past_due_flag(self) -> None:
        """Strictly before today is past due; today is not."""
        data = _data(assignments=[_assignment(1, "2026-10-18"), _assignment(2, "2026-10-19")])
        items = {x.id: x for x in agenda_items(data, MONDAY)}

        assert items[1].past_due is True
        assert items[1].skip_confirm is True
        assert items[2].past_due is False
        assert items[2].skip_confirm is False

    def test_high_priority(self) -> None:
        data = _data(assignments=[_assignment(1, "2026-10-25", priority="High Priority")])

        assert agenda_items(data, MONDAY)[0].high_priority is True

    def test_upcoming_takes_five_earliest(self) -> None:
        """Seven items give the five earliest, ascending."""
        dues = ["2026-10-27", "2026-10-21", "2026-10-30", "2026-10-20", "2026-10-25", "2026-10-23", "2026-10-22"]
        data = _data(assignments=[_assignment(i, d) for i, d in enumerate(dues)])

        upcoming = upcoming_items(data, MONDAY)

        assert [x.date_text for x in upcoming] == [
            "2026-10-20", "2026-10-21", "2026-10-22", "2026-10-23", "2026-10-25",
        ]

    def test_upcoming_includes_completed(self) -> None:
        """Completed items stay in the list, rendered struck through."""
        data = _data(assignments=[_assignment(1, "2026-10-20", completed=True)])

        assert upcoming_items(data, MONDAY)[0].completed is True


class TestHabitRows:
    """Tests for habit progress."""

    def test_progress_is_capped(self) -> None:
        data = _data(habits=[
            {"id": 1, "title": "Water", "target": 8, "measure": "glasses", "current": 4},
            {"id": 2, "title": "Read", "target": 2, "measure": "ch", "current": 5},
        ])

        half, over = habit_rows(data)

        assert half.progress == 50.0
        assert half.reached is False
        assert over.progress == 100.0
        assert over.reached is True

    def test_float_counter(self) -> None:
        """A float counter from another client still shows its progress."""
        data = _data(habits=[{"id": 1, "title": "Water", "target": 8, "measure": "glasses", "current": 2.0}])

        (row,) = habit_rows(data)

        assert row.current == 2
        assert row.progress == 25.0

    def test_missing_target(self) -> None:
        """Without a target any count reads as full."""
        data = _data(habits=[
            {"id": 1, "title": "x", "target": None, "measure": "", "current": 0},
            {"id": 2, "title": "y", "target": None, "measure": "", "current": 1},
        ])

        empty, started = habit_rows(data)

        assert empty.progress == 0.0
        assert started.progress == 100.0
        assert started.reached is False


class TestDashboard:
    """Tests for the whole-page model."""

    def test_clock_labels(self) -> None:
        assert clock_labels(at(MONDAY, 9, 5)) == ("09:05", "Monday, October 19")

    def test_build_dashboard(self) -> None:
        data = _data(
            courses=COURSES,
            tasks=[{"id": 1, "title": "Email", "completed": True}],
            notes=[{"id": 2, "text": "hi"}],
            darkMode=True,
        )

        model = build_dashboard(data, ViewMode.DAY, at(MONDAY, 9, 30))

        assert model.schedule.mode == ViewMode.DAY
        assert model.focus.course["title"] == "Chem"
        assert model.tasks[0].skip_confirm is True
        assert model.notes[0].text == "hi"
        assert model.dark_mode is True
        assert model.clock == "09:30"

    def test_malformed_collections_are_ignored(self) -> None:
        """Non-list collections and non-object entries don't break rendering."""
        data = _data(tasks="oops", notes=[None, {"id": 1, "text": "ok"}])

        model = build_dashboard(data, ViewMode.WEEK, at(MONDAY, 12, 0))

        assert model.tasks == []
        assert [n.text for n in model.notes] == ["ok"]
