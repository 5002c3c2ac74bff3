import datetime
import json
import math
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


# -------------------------------
# Defaults / constants
# -------------------------------

STORAGE_KEY = "student_planner_db"

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Accent per weekday column; the weekend and Friday share the muted border
WEEK_ACCENTS = ["purple", "pink", "orange", "lavender", "muted", "muted", "muted"]

HIGH_PRIORITY = "High Priority"
NORMAL_PRIORITY = "Normal"
PRIORITIES = [NORMAL_PRIORITY, HIGH_PRIORITY]

UPCOMING_LIMIT = 5


def today_label(day: Optional[datetime.date] = None) -> str:
    """Locale-rendered calendar date, used for the habit rollover marker."""
    return (day or datetime.date.today()).strftime("%x")


def default_store(today: Optional[datetime.date] = None) -> Dict[str, Any]:
    return {
        "darkMode": False,
        "courses": [],
        "assignments": [],
        "exams": [],
        "habits": [],
        "tasks": [],
        "notes": [],
        "lastHabitReset": today_label(today),
    }


def shallow_merge(base: Optional[Mapping[str, Any]], overlay: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged = dict(base or {})
    merged.update(overlay or {})
    return merged


# -------------------------------
# Storage media
# -------------------------------

class FileStorage:
    """JSON document on disk (desktop mode)."""

    def __init__(self, path: str):
        self.path = path

    def read(self) -> Optional[str]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read()

    def write(self, text: str) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)

    def __repr__(self) -> str:
        return f"FileStorage({self.path!r})"


# -------------------------------
# Entity kinds
# -------------------------------

class EntityKind(str, Enum):
    COURSE = "course"
    ASSIGNMENT = "assignment"
    EXAM = "exam"
    HABIT = "habit"
    TASK = "task"
    NOTE = "note"


def _text(x: Any) -> str:
    return "" if x is None else str(x).strip()


def _parse_int(x: Any) -> Optional[int]:
    # Leading integer of the value, like a form's number field; None when absent
    if x is None or isinstance(x, bool):
        return None
    m = re.match(r"\s*([+-]?\d+)", str(x))
    return int(m.group(1)) if m else None


def _as_count(x: Any) -> int:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return 0
    return int(x) if math.isfinite(x) else 0


def _build_course(fields: Mapping[str, Any]) -> Dict[str, Any]:
    days = fields.get("days") or []
    if isinstance(days, str):
        days = [days]
    return {
        "title": _text(fields.get("title")),
        "teacher": _text(fields.get("teacher")),
        "days": [str(d) for d in days],
        "start": _text(fields.get("start")),
        "end": _text(fields.get("end")),
    }


def _build_assignment(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "title": _text(fields.get("title")),
        "course": _text(fields.get("course")),
        "dueDate": _text(fields.get("dueDate")),
        "priority": _text(fields.get("priority")) or NORMAL_PRIORITY,
        "completed": False,
    }


def _build_exam(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "title": _text(fields.get("title")),
        "course": _text(fields.get("course")),
        "date": _text(fields.get("date")),
        "time": _text(fields.get("time")),
        "completed": False,
    }


def _build_habit(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "title": _text(fields.get("title")),
        "target": _parse_int(fields.get("target")),
        "measure": _text(fields.get("measure")),
        "current": 0,
    }


def _build_task(fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {"title": _text(fields.get("title")), "completed": False}


def _build_note(fields: Mapping[str, Any]) -> Dict[str, Any]:
    text = fields.get("text")
    return {"text": "" if text is None else str(text)}


@dataclass(frozen=True)
class EntitySpec:
    collection: str
    build: Callable[[Mapping[str, Any]], Dict[str, Any]]
    completable: bool = False


ENTITY_SPECS: Dict[EntityKind, EntitySpec] = {
    EntityKind.COURSE: EntitySpec("courses", _build_course),
    EntityKind.ASSIGNMENT: EntitySpec("assignments", _build_assignment, completable=True),
    EntityKind.EXAM: EntitySpec("exams", _build_exam, completable=True),
    EntityKind.HABIT: EntitySpec("habits", _build_habit),
    EntityKind.TASK: EntitySpec("tasks", _build_task, completable=True),
    EntityKind.NOTE: EntitySpec("notes", _build_note),
}


# -------------------------------
# Application state (persisted store)
# -------------------------------

SaveHook = Callable[[Dict[str, Any]], None]


class PlannerState:
    """
    The planner's single record plus the medium it persists to.

    Every mutation writes the whole record back through save(), which then
    calls the registered save hooks (cloud mirroring) in registration order.
    Storage failures are logged and swallowed; the in-memory record is kept.
    """

    def __init__(self, storage: Any, today: Optional[datetime.date] = None):
        self.storage = storage
        self.data: Dict[str, Any] = default_store(today)
        self._save_hooks: List[SaveHook] = []

    # ---- hooks ----

    def add_save_hook(self, hook: SaveHook) -> None:
        if hook not in self._save_hooks:
            self._save_hooks.append(hook)

    # ---- persistence ----

    def load(self, today: Optional[datetime.date] = None) -> None:
        try:
            raw = self.storage.read()
            if raw is None:
                logger.info("No planner data in %r, writing defaults", self.storage)
                self.save()
            else:
                loaded = json.loads(raw)
                if not isinstance(loaded, dict):
                    raise ValueError(f"expected a JSON object, got {type(loaded).__name__}")
                self.data = shallow_merge(default_store(today), loaded)
        except (OSError, ValueError) as e:
            # Leave the unreadable medium alone; the rollover would overwrite it
            logger.error("Failed to load planner data from %r: %s", self.storage, e)
            return

        self.roll_over_habits(today)

    def save(self) -> bool:
        ok = True
        try:
            self.storage.write(json.dumps(self.data, indent=2, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save planner data to %r: %s", self.storage, e)
            ok = False

        for hook in list(self._save_hooks):
            try:
                hook(self.data)
            except Exception:
                logger.exception("Save hook %r failed", hook)
        return ok

    def replace(self, data: Mapping[str, Any], today: Optional[datetime.date] = None) -> None:
        self.data = shallow_merge(default_store(today), data)
        self.save()

    def merge_remote(self, remote: Mapping[str, Any]) -> None:
        # Remote wins per top-level field, whole collections included
        self.data = shallow_merge(self.data, remote)
        self.save()

    def roll_over_habits(self, today: Optional[datetime.date] = None) -> bool:
        label = today_label(today)
        if self.data.get("lastHabitReset") == label:
            return False

        for habit in self.collection(EntityKind.HABIT):
            if isinstance(habit, dict):
                habit["current"] = 0
        self.data["lastHabitReset"] = label
        logger.info("New day %s, habit counters reset", label)
        self.save()
        return True

    def set_dark_mode(self, enabled: bool) -> None:
        self.data["darkMode"] = bool(enabled)
        self.save()

    # ---- collections ----

    def collection(self, kind: EntityKind) -> List[Dict[str, Any]]:
        name = ENTITY_SPECS[kind].collection
        items = self.data.get(name)
        if not isinstance(items, list):
            items = []
            self.data[name] = items
        return items

    def find(self, kind: EntityKind, entity_id: Any) -> Optional[Dict[str, Any]]:
        for item in self.collection(kind):
            if isinstance(item, dict) and item.get("id") == entity_id:
                return item
        return None

    def course_titles(self) -> List[str]:
        return [_text(c.get("title")) for c in self.collection(EntityKind.COURSE) if isinstance(c, dict)]

    def new_id(self, kind: EntityKind, now: Optional[datetime.datetime] = None) -> int:
        stamp = int((now or datetime.datetime.now()).timestamp() * 1000)
        taken = {item.get("id") for item in self.collection(kind) if isinstance(item, dict)}
        while stamp in taken:
            stamp += 1
        return stamp

    def add(self, kind: EntityKind, fields: Mapping[str, Any], now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
        entity = {"id": self.new_id(kind, now)}
        entity.update(ENTITY_SPECS[kind].build(fields))
        self.collection(kind).append(entity)
        self.save()
        return entity

    def remove(self, kind: EntityKind, entity_id: Any) -> bool:
        items = self.collection(kind)
        kept = [x for x in items if not (isinstance(x, dict) and x.get("id") == entity_id)]
        self.data[ENTITY_SPECS[kind].collection] = kept
        self.save()
        return len(kept) != len(items)

    def set_completed(self, kind: EntityKind, entity_id: Any, completed: bool) -> bool:
        if not ENTITY_SPECS[kind].completable:
            raise ValueError(f"{kind.value} entries have no completed flag")

        item = self.find(kind, entity_id)
        if item is not None:
            item["completed"] = bool(completed)
        self.save()
        return item is not None

    def increment_habit(self, entity_id: Any) -> Optional[Dict[str, Any]]:
        habit = self.find(EntityKind.HABIT, entity_id)
        if habit is not None:
            habit["current"] = _as_count(habit.get("current")) + 1
        self.save()
        return habit


# -------------------------------
# Delete confirmation
# -------------------------------

@dataclass(frozen=True)
class PendingDelete:
    kind: EntityKind
    entity_id: Any


class DeleteGate:
    def __init__(self, state: PlannerState):
        self.state = state
        self.pending: Optional[PendingDelete] = None

    @property
    def awaiting(self) -> bool:
        return self.pending is not None

    def request(self, kind: EntityKind, entity_id: Any, skip_confirm: bool = False) -> bool:
        """Delete now when skip_confirm is set, otherwise stage it. Returns True if deleted."""
        if skip_confirm:
            self.state.remove(kind, entity_id)
            return True
        self.pending = PendingDelete(kind, entity_id)
        return False

    def confirm(self) -> bool:
        pending, self.pending = self.pending, None
        if pending is None:
            return False
        self.state.remove(pending.kind, pending.entity_id)
        return True

    def cancel(self) -> None:
        self.pending = None


# -------------------------------
# Dates and times
# -------------------------------

def parse_due(value: Any) -> Optional[datetime.date]:
    s = _text(value)
    if not s:
        return None
    try:
        return datetime.date.fromisoformat(s)
    except ValueError:
        pass
    try:
        return datetime.datetime.fromisoformat(s).date()
    except ValueError:
        return None


def item_due_text(item: Mapping[str, Any]) -> str:
    return _text(item.get("dueDate") or item.get("date"))


def is_past_due(item: Mapping[str, Any], today: datetime.date) -> bool:
    due = parse_due(item_due_text(item))
    return due is not None and due < today


def skip_delete_confirm(item: Mapping[str, Any], today: datetime.date) -> bool:
    return bool(item.get("completed")) or is_past_due(item, today)


def parse_minutes(value: Any) -> Optional[int]:
    """'H:MM' / 'HH:MM' to minute-of-day. Anything else gives None."""
    parts = _text(value).split(":")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return None


def weekday_name(day: datetime.date) -> str:
    return WEEKDAYS[day.weekday()]


# -------------------------------
# Scheduling projector
# -------------------------------

FOCUS_NOW = "now"
FOCUS_LATER = "later"
FOCUS_TOMORROW = "tomorrow"
FOCUS_NONE = "none"


@dataclass(frozen=True)
class Focus:
    status: str
    course: Optional[Dict[str, Any]] = None
    subtitle: str = "No upcoming courses scheduled."


def courses_on(courses: List[Dict[str, Any]], weekday: str) -> List[Dict[str, Any]]:
    # Zero-padded "HH:MM" sorts correctly as a plain string
    matching = [c for c in courses if isinstance(c, dict) and weekday in (c.get("days") or [])]
    return sorted(matching, key=lambda c: _text(c.get("start")))


def focus_course(courses: List[Dict[str, Any]], now: datetime.datetime) -> Focus:
    minute = now.hour * 60 + now.minute

    for c in courses_on(courses, weekday_name(now.date())):
        start = parse_minutes(c.get("start"))
        end = parse_minutes(c.get("end"))
        if start is None:
            continue
        if end is not None and start <= minute <= end:
            return Focus(FOCUS_NOW, c, "Happening Now")
        if minute < start:
            return Focus(FOCUS_LATER, c, f"Starts at {c.get('start')}")

    tomorrow = courses_on(courses, weekday_name(now.date() + datetime.timedelta(days=1)))
    if tomorrow:
        first = tomorrow[0]
        return Focus(FOCUS_TOMORROW, first, f"Tomorrow at {first.get('start')}")

    return Focus(FOCUS_NONE)


# -------------------------------
# Render model (pure projection)
# -------------------------------

class ViewMode(str, Enum):
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"


@dataclass
class DayColumn:
    weekday: str
    courses: List[Dict[str, Any]]
    accent: str
    empty_icon: str


@dataclass
class AgendaItem:
    kind: EntityKind
    id: Any
    title: str
    course: str
    date_text: str
    due: Optional[datetime.date]
    time: str = ""
    priority: str = ""
    completed: bool = False
    past_due: bool = False

    @property
    def high_priority(self) -> bool:
        return self.priority == HIGH_PRIORITY

    @property
    def skip_confirm(self) -> bool:
        return self.completed or self.past_due


@dataclass
class ScheduleModel:
    mode: ViewMode
    title: str
    icon: str
    columns: List[DayColumn] = field(default_factory=list)
    agenda: List[AgendaItem] = field(default_factory=list)


@dataclass
class HabitRow:
    id: Any
    title: str
    current: int
    target: Optional[int]
    measure: str
    progress: float
    reached: bool


@dataclass
class TaskRow:
    id: Any
    title: str
    completed: bool

    @property
    def skip_confirm(self) -> bool:
        return self.completed


@dataclass
class NoteRow:
    id: Any
    text: str


@dataclass
class DashboardModel:
    schedule: ScheduleModel
    upcoming: List[AgendaItem]
    habits: List[HabitRow]
    tasks: List[TaskRow]
    notes: List[NoteRow]
    focus: Focus
    dark_mode: bool
    clock: str
    date_label: str


def _entities(data: Mapping[str, Any], kind: EntityKind) -> List[Dict[str, Any]]:
    items = data.get(ENTITY_SPECS[kind].collection)
    if not isinstance(items, list):
        return []
    return [x for x in items if isinstance(x, dict)]


def agenda_items(data: Mapping[str, Any], today: datetime.date) -> List[AgendaItem]:
    """Assignments and exams in one list, earliest first; undated entries last."""
    items: List[AgendaItem] = []
    for kind in (EntityKind.ASSIGNMENT, EntityKind.EXAM):
        for e in _entities(data, kind):
            date_text = item_due_text(e)
            due = parse_due(date_text)
            items.append(AgendaItem(
                kind=kind,
                id=e.get("id"),
                title=_text(e.get("title")),
                course=_text(e.get("course")),
                date_text=date_text,
                due=due,
                time=_text(e.get("time")),
                priority=_text(e.get("priority")),
                completed=bool(e.get("completed", False)),
                past_due=due is not None and due < today,
            ))

    items.sort(key=lambda x: (x.due is None, x.due or datetime.date.min))
    return items


def upcoming_items(data: Mapping[str, Any], today: datetime.date, limit: int = UPCOMING_LIMIT) -> List[AgendaItem]:
    return agenda_items(data, today)[:limit]


def build_schedule(data: Mapping[str, Any], mode: ViewMode, today: datetime.date) -> ScheduleModel:
    mode = ViewMode(mode)
    courses = _entities(data, EntityKind.COURSE)

    if mode == ViewMode.DAY:
        day = weekday_name(today)
        column = DayColumn(day, courses_on(courses, day), "purple", "event_busy")
        return ScheduleModel(mode, "Today's Schedule", "today", columns=[column])

    if mode == ViewMode.WEEK:
        columns = []
        for i, day in enumerate(WEEKDAYS):
            icon = "weekend" if day in ("Saturday", "Sunday") else "event_busy"
            columns.append(DayColumn(day, courses_on(courses, day), WEEK_ACCENTS[i], icon))
        return ScheduleModel(mode, "Weekly Schedule", "calendar_view_week", columns=columns)

    # Month and Year project the same agenda; only the label and icon differ
    icon = "calendar_month" if mode == ViewMode.MONTH else "view_timeline"
    return ScheduleModel(mode, f"{mode.value} Overview", icon, agenda=agenda_items(data, today))


def habit_rows(data: Mapping[str, Any]) -> List[HabitRow]:
    rows = []
    for h in _entities(data, EntityKind.HABIT):
        current = _as_count(h.get("current"))
        target = h.get("target")
        target = target if isinstance(target, int) and not isinstance(target, bool) else None

        if target:
            progress = min(current / target * 100.0, 100.0)
        else:
            progress = 100.0 if current > 0 else 0.0
        progress = max(progress, 0.0)

        rows.append(HabitRow(
            id=h.get("id"),
            title=_text(h.get("title")),
            current=current,
            target=target,
            measure=_text(h.get("measure")),
            progress=round(progress, 1),
            reached=target is not None and current >= target,
        ))
    return rows


def clock_labels(now: datetime.datetime) -> Tuple[str, str]:
    return now.strftime("%H:%M"), f"{now.strftime('%A, %B')} {now.day}"


def build_dashboard(data: Mapping[str, Any], mode: ViewMode, now: datetime.datetime) -> DashboardModel:
    today = now.date()
    clock, date_label = clock_labels(now)
    return DashboardModel(
        schedule=build_schedule(data, mode, today),
        upcoming=upcoming_items(data, today),
        habits=habit_rows(data),
        tasks=[
            TaskRow(t.get("id"), _text(t.get("title")), bool(t.get("completed", False)))
            for t in _entities(data, EntityKind.TASK)
        ],
        notes=[NoteRow(n.get("id"), "" if n.get("text") is None else str(n.get("text"))) for n in _entities(data, EntityKind.NOTE)],
        focus=focus_course(_entities(data, EntityKind.COURSE), now),
        dark_mode=bool(data.get("darkMode", False)),
        clock=clock,
        date_label=date_label,
    )
