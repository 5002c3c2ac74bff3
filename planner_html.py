from html import escape
from typing import List

from planner_core import (
    AgendaItem,
    DashboardModel,
    DayColumn,
    EntityKind,
    FOCUS_NONE,
    Focus,
    HabitRow,
    NoteRow,
    ScheduleModel,
    TaskRow,
    ViewMode,
)

ICON_FONT_URL = (
    "https://fonts.googleapis.com/css2?family=Material+Symbols+Outlined:"
    "opsz,wght,FILL,GRAD@20..48,100..700,0..1,-50..200"
)

THEME_LIGHT = {
    "bg": "#F7F5FB",
    "surface": "#FFFFFF",
    "text-main": "#1F1B2E",
    "text-muted": "#6B6880",
    "border-color": "#E6E3EF",
    "hover-bg": "#F0EDF7",
}

THEME_DARK = {
    "bg": "#14121C",
    "surface": "#1F1C2B",
    "text-main": "#F1EEF9",
    "text-muted": "#A19DB5",
    "border-color": "#34304A",
    "hover-bg": "#2A2739",
}

ACCENTS = {
    "purple": "#7C5CFF",
    "pink": "#F25C9A",
    "orange": "#FF8A4C",
    "lavender": "#B69CFF",
    "muted": "#E5E7EB",
}


def _e(x) -> str:
    return escape("" if x is None else str(x))


def _icon(name: str, cls: str = "") -> str:
    return f'<span class="material-symbols-outlined {cls}">{_e(name)}</span>'


def page_css(dark_mode: bool = False) -> str:
    theme = THEME_DARK if dark_mode else THEME_LIGHT
    variables = "".join(f"--{k}:{v};" for k, v in theme.items())
    variables += "".join(f"--sunset-{k}:{v};" for k, v in ACCENTS.items())
    return (
        f'<link rel="stylesheet" href="{ICON_FONT_URL}">'
        "<style>"
        f".sp-root{{{variables}color:var(--text-main);font-family:system-ui,sans-serif;}}"
        ".sp-root .card{background:var(--surface);border:1px solid var(--border-color);"
        "border-radius:12px;padding:12px;margin-bottom:8px;}"
        ".sp-root .muted{color:var(--text-muted);font-size:12px;}"
        ".sp-root .label{font-size:10px;font-weight:700;letter-spacing:.08em;text-transform:uppercase;"
        "color:var(--text-muted);margin-bottom:8px;}"
        ".sp-root .grid-week{display:grid;grid-template-columns:repeat(7,minmax(0,1fr));gap:10px;}"
        ".sp-root .grid-agenda{display:grid;grid-template-columns:repeat(3,minmax(0,1fr));gap:14px;}"
        ".sp-root .empty-cell{height:64px;display:flex;align-items:center;justify-content:center;"
        "border:2px dashed var(--border-color);border-radius:8px;color:var(--border-color);}"
        ".sp-root .done{opacity:.5;text-decoration:line-through;}"
        ".sp-root .tag-high{background:#FEF2F2;color:#DC2626;font-size:10px;font-weight:700;"
        "border-radius:999px;padding:2px 10px;text-transform:uppercase;}"
        ".sp-root .past-due{color:#DC2626;}"
        ".sp-root .bar{height:8px;background:var(--border-color);border-radius:999px;overflow:hidden;}"
        ".sp-root .bar > div{height:100%;background:var(--sunset-lavender);}"
        ".sp-root .note{white-space:pre-wrap;font-size:12px;line-height:1.5;}"
        "</style>"
    )


# -------------------------------
# Schedule
# -------------------------------

def _course_card(course: dict, accent: str, with_teacher: bool = False) -> str:
    teacher = str(course.get("teacher") or "").strip()
    detail = f"{_e(course.get('start'))} - {_e(course.get('end'))}"
    if with_teacher and teacher:
        detail += f" &bull; {_e(teacher)}"
    return (
        f'<div class="card" style="border-left:3px solid var(--sunset-{accent})">'
        f'<div style="font-weight:700;font-size:13px">{_e(course.get("title"))}</div>'
        f'<div class="muted">{detail}</div>'
        "</div>"
    )


def _day_column(column: DayColumn, single_day: bool = False) -> str:
    parts = [
        f'<div class="card" style="border-top:3px solid var(--sunset-{column.accent})">',
        f'<div class="label">{_e(column.weekday)}</div>',
    ]
    if not column.courses:
        if single_day:
            parts.append('<p class="muted" style="font-weight:700">No classes today!</p>')
        else:
            parts.append(f'<div class="empty-cell">{_icon(column.empty_icon)}</div>')
    for c in column.courses:
        parts.append(_course_card(c, column.accent, with_teacher=single_day))
    parts.append("</div>")
    return "".join(parts)


def _agenda_card(item: AgendaItem) -> str:
    is_assignment = item.kind == EntityKind.ASSIGNMENT
    icon = "assignment" if is_assignment else "school"
    color = "var(--sunset-pink)" if is_assignment else "var(--sunset-orange)"
    when = f"Due: {_e(item.date_text) or 'no date'}"
    if item.time:
        when += f" at {_e(item.time)}"
    return (
        f'<div class="card" style="border-left:4px solid {color}">'
        f'<div class="label" style="color:{color}">{_icon(icon)} {_e(item.kind.value)}</div>'
        f'<div style="font-weight:700;font-size:17px">{_e(item.title)}</div>'
        f'<div class="muted">{_e(item.course)}</div>'
        f'<div class="muted" style="margin-top:8px;font-weight:600">{when}</div>'
        "</div>"
    )


def render_schedule(model: ScheduleModel) -> str:
    header = f'<h3>{_icon(model.icon)} {_e(model.title)}</h3>'

    if model.mode == ViewMode.DAY:
        return header + "".join(_day_column(c, single_day=True) for c in model.columns)

    if model.mode == ViewMode.WEEK:
        return header + '<div class="grid-week">' + "".join(_day_column(c) for c in model.columns) + "</div>"

    if not model.agenda:
        return header + '<p class="muted" style="text-align:center;padding:40px 0">No upcoming events found.</p>'
    return header + '<div class="grid-agenda">' + "".join(_agenda_card(x) for x in model.agenda) + "</div>"


# -------------------------------
# Side widgets
# -------------------------------

def render_upcoming_item(item: AgendaItem) -> str:
    icon = "functions" if item.kind == EntityKind.ASSIGNMENT else "school"
    course = f"{_e(item.course)} &bull; " if item.course else ""
    due_cls = "past-due" if item.past_due and not item.completed else ""
    tag = '<span class="tag-high">High Priority</span>' if item.high_priority else ""
    return (
        f'<div class="card {"done" if item.completed else ""}" '
        'style="display:flex;justify-content:space-between;align-items:center">'
        f'<div>{_icon(icon)} <b>{_e(item.title)}</b>'
        f'<div class="muted {due_cls}">{course}Due: {_e(item.date_text)}</div></div>'
        f"{tag}</div>"
    )


def render_upcoming(items: List[AgendaItem]) -> str:
    if not items:
        return '<p class="muted" style="font-style:italic;text-align:center">No upcoming assignments or exams.</p>'
    return "".join(render_upcoming_item(x) for x in items)


def render_habit(row: HabitRow) -> str:
    target = "?" if row.target is None else row.target
    title_style = "color:var(--sunset-lavender)" if row.reached else ""
    return (
        '<div style="margin-bottom:10px">'
        '<div style="display:flex;justify-content:space-between;font-size:12px;font-weight:700">'
        f'<span style="{title_style}">{_e(row.title)}</span>'
        f'<span>{row.current}/{_e(target)} <span class="muted">{_e(row.measure)}</span></span>'
        "</div>"
        f'<div class="bar"><div style="width:{row.progress}%"></div></div>'
        "</div>"
    )


def render_habits(rows: List[HabitRow]) -> str:
    if not rows:
        return '<p class="muted" style="font-style:italic">No daily habits. Add one!</p>'
    return "".join(render_habit(r) for r in rows)


def render_task(row: TaskRow) -> str:
    box = "&#9745;" if row.completed else "&#9744;"
    return f'<div class="{"done" if row.completed else ""}" style="font-size:14px">{box} {_e(row.title)}</div>'


def render_tasks(rows: List[TaskRow]) -> str:
    return "".join(render_task(r) for r in rows)


def render_note(row: NoteRow) -> str:
    return f'<div class="card note">{_e(row.text)}</div>'


def render_notes(rows: List[NoteRow]) -> str:
    return "".join(render_note(r) for r in rows)


def render_focus(focus: Focus) -> str:
    if focus.status == FOCUS_NONE or focus.course is None:
        return f'<p class="muted" style="font-style:italic">{_e(focus.subtitle)}</p>'
    return (
        '<div class="card" style="display:flex;gap:14px;align-items:center">'
        f'<div style="font-size:30px;color:var(--sunset-purple)">{_icon("science")}</div>'
        f'<div><div style="font-weight:700">{_e(focus.course.get("title"))}</div>'
        f'<div class="muted">{_e(focus.subtitle)}</div></div>'
        "</div>"
    )


WINDOW_COMMANDS = [("window-min", "remove"), ("window-max", "crop_square"), ("window-close", "close")]


def _window_bar() -> str:
    buttons = "".join(
        f"<button title=\"{cmd}\" onclick=\"fetch('/window/{cmd}', {{method: 'POST'}})\" "
        'style="border:none;background:none;cursor:pointer;color:var(--text-muted)">'
        f"{_icon(icon)}</button>"
        for cmd, icon in WINDOW_COMMANDS
    )
    return f'<nav id="window-bar" style="display:flex;justify-content:flex-end;gap:4px">{buttons}</nav>'


def wrap(region_html: str) -> str:
    return f'<div class="sp-root">{region_html}</div>'


def render_page(model: DashboardModel, window_bar: bool = False) -> str:
    """Full standalone page, used for the desktop snapshot. window_bar adds min/max/close buttons."""
    bg = (THEME_DARK if model.dark_mode else THEME_LIGHT)["bg"]
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        "<title>Student Planner</title>"
        f"{page_css(model.dark_mode)}</head>"
        f'<body style="background:{bg};margin:0;padding:24px">'
        '<div class="sp-root">'
        f"{_window_bar() if window_bar else ''}"
        f'<header><h1 style="margin:0">{_e(model.clock)}</h1>'
        f'<div class="muted">{_e(model.date_label)}</div></header>'
        f'<section id="focus-course">{render_focus(model.focus)}</section>'
        f'<section id="schedule">{render_schedule(model.schedule)}</section>'
        f'<section id="upcoming"><h3>Upcoming</h3>{render_upcoming(model.upcoming)}</section>'
        f'<section id="habits"><h3>Daily Habits</h3>{render_habits(model.habits)}</section>'
        f'<section id="tasks"><h3>Tasks</h3>{render_tasks(model.tasks)}</section>'
        f'<section id="notes"><h3>Notes</h3>{render_notes(model.notes)}</section>'
        "</div></body></html>"
    )
