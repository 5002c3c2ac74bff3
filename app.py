import datetime
import logging
from typing import Any

import streamlit as st

from browser_storage import BrowserStorage
from cloud_sync import CloudSync, SignInError, make_client
from media_info import STATUS_ERROR, STATUS_PLAYING, query_media_session
from planner_core import (
    PRIORITIES,
    WEEKDAYS,
    DashboardModel,
    DeleteGate,
    EntityKind,
    FileStorage,
    PlannerState,
    ViewMode,
    build_dashboard,
    clock_labels,
    focus_course,
)
from planner_export import (
    agenda_events,
    build_ics_calendar,
    export_backup,
    export_collections_csv,
    import_backup,
    now_stamp,
)
from planner_html import (
    THEME_DARK,
    page_css,
    render_focus,
    render_habit,
    render_note,
    render_schedule,
    render_upcoming,
    render_upcoming_item,
    wrap,
)
from planner_settings import configure_logging, load_settings

logger = logging.getLogger(__name__)

NO_COURSE = "-- None --"


def _html(markup: str) -> None:
    st.markdown(wrap(markup), unsafe_allow_html=True)


# -------------------------------
# Session state
# -------------------------------

def init_app_state() -> None:
    if "settings" not in st.session_state:
        settings = load_settings(st.secrets)
        configure_logging(settings.log_level)
        st.session_state.settings = settings
    settings = st.session_state.settings

    if "planner" not in st.session_state:
        if settings.storage_mode == "browser":
            storage: Any = st.session_state.setdefault("browser_storage", BrowserStorage())
            if not storage.fetch():
                st.caption("Loading your planner...")
                st.stop()
        else:
            storage = FileStorage(settings.data_path)

        state = PlannerState(storage)
        state.load()
        st.session_state.planner = state
        st.session_state.cloud = CloudSync(state, make_client(settings), settings.supabase_table)
        st.session_state.delete_gate = DeleteGate(state)

    st.session_state.setdefault("view_mode", settings.default_view)


def flush_browser_storage(state: PlannerState) -> None:
    if isinstance(state.storage, BrowserStorage):
        state.storage.flush()


def _bind(key: str, value: Any) -> None:
    # Widgets show the store, not a value left over from an earlier run
    st.session_state[key] = value


def _on_dark_mode(state: PlannerState, key: str) -> None:
    state.set_dark_mode(st.session_state[key])


def _on_completed(state: PlannerState, kind: EntityKind, entity_id: Any, key: str) -> None:
    state.set_completed(kind, entity_id, st.session_state[key])


def _request_delete(gate: DeleteGate, kind: EntityKind, entity_id: Any, skip_confirm: bool = False) -> None:
    gate.request(kind, entity_id, skip_confirm=skip_confirm)
    st.rerun()


# -------------------------------
# UI: sidebar
# -------------------------------

def account_sidebar(cloud: CloudSync) -> None:
    st.sidebar.header("Account")

    if not cloud.enabled:
        st.sidebar.caption("Local mode. Add Supabase secrets to enable cloud sync.")
        return

    if cloud.signed_in:
        user = cloud.user
        if user.photo_url:
            st.sidebar.image(user.photo_url, width=48)
        st.sidebar.success(f"Signed in as: {user.label}")
        if st.sidebar.button("Sign out", key="sb_signout"):
            cloud.sign_out()
            st.rerun()
        return

    mode = st.sidebar.radio("Choose:", ["Log in", "Sign up"], key="sb_mode")
    email = st.sidebar.text_input("Email", key="sb_email").strip()
    password = st.sidebar.text_input("Password", type="password", key="sb_password")

    if mode == "Log in":
        if st.sidebar.button("Log in", type="primary", key="sb_login_btn"):
            try:
                cloud.sign_in(email, password)
            except SignInError as e:
                st.sidebar.error(str(e))
                return
            st.rerun()
    else:
        st.sidebar.caption("You may need to confirm your email depending on Supabase Auth settings.")
        if st.sidebar.button("Create account", type="primary", key="sb_signup_btn"):
            try:
                cloud.sign_up(email, password)
            except SignInError as e:
                st.sidebar.error(str(e))
                return
            st.sidebar.success("Account created. Now log in (and confirm email if required).")


def options_sidebar(state: PlannerState, media_helper: str) -> None:
    st.sidebar.header("Options")

    _bind("opt_dark_mode", bool(state.data.get("darkMode", False)))
    st.sidebar.toggle("Dark mode", key="opt_dark_mode", on_change=_on_dark_mode, args=(state, "opt_dark_mode"))

    st.sidebar.radio("View", [m.value for m in ViewMode], horizontal=True, key="view_mode")

    if media_helper:
        info = query_media_session(media_helper)
        if info.status == STATUS_PLAYING:
            st.sidebar.caption(f"🎵 {info.label} ({info.playback_status})")
        elif info.status == STATUS_ERROR:
            st.sidebar.caption("🎵 Media info unavailable")
        else:
            st.sidebar.caption("🎵 Nothing playing")


def backup_sidebar(state: PlannerState) -> None:
    with st.sidebar.expander("💾 Backup & export", expanded=False):
        st.download_button(
            "Download backup (.json)",
            data=export_backup(state.data).encode("utf-8"),
            file_name=f"student_planner_{now_stamp()}.json",
            mime="application/json",
            key="dl_backup_json",
        )

        csvs = export_collections_csv(state.data)
        for name, text in csvs.items():
            st.download_button(
                f"Download {name} CSV",
                data=text,
                file_name=f"{name}_{now_stamp()}.csv",
                mime="text/csv",
                key=f"dl_csv_{name}",
            )

        events = agenda_events(state.data)
        st.download_button(
            "Download calendar (.ics)",
            data=build_ics_calendar(events).encode("utf-8"),
            file_name=f"student_planner_{now_stamp()}.ics",
            mime="text/calendar",
            key="dl_ics",
        )
        st.caption(f"Calendar will include {len(events)} event(s).")

        st.write("---")
        uploaded = st.file_uploader("Restore backup (.json)", type=["json"], key="up_backup")
        if uploaded is not None and st.button("Replace my data with this backup", key="restore_backup_btn"):
            try:
                data = import_backup(uploaded.getvalue().decode("utf-8"))
            except (UnicodeDecodeError, ValueError) as e:
                st.error(f"Couldn't read that backup. ({e})")
                return
            state.replace(data)
            st.success("Backup restored.")
            st.rerun()


# -------------------------------
# UI: clock + focus course
# -------------------------------

def clock_panel() -> None:
    state: PlannerState = st.session_state.planner
    now = datetime.datetime.now()
    focus = focus_course(state.collection(EntityKind.COURSE), now)

    clock, date_label = clock_labels(now)

    c1, c2 = st.columns([1, 2])
    with c1:
        _html(f'<h1 style="margin:0">{clock}</h1><div class="muted">{date_label}</div>')
    with c2:
        _html(render_focus(focus))


def confirm_delete_prompt(gate: DeleteGate) -> None:
    if not gate.awaiting:
        return

    st.warning(f"Delete this {gate.pending.kind.value}? This can't be undone.")
    cA, cB = st.columns(2)
    with cA:
        if st.button("Yes, delete", key="confirm_delete_yes"):
            gate.confirm()
            st.rerun()
    with cB:
        if st.button("Cancel", key="confirm_delete_no"):
            gate.cancel()
            st.rerun()


# -------------------------------
# UI: schedule
# -------------------------------

def schedule_view(gate: DeleteGate, model: DashboardModel) -> None:
    schedule = model.schedule
    _html(render_schedule(schedule))

    if schedule.mode in (ViewMode.DAY, ViewMode.WEEK):
        shown = [c for col in schedule.columns for c in col.courses]
        # A course can sit in several week columns
        seen = set()
        with st.expander("Edit courses", expanded=False):
            if not shown:
                st.caption("No courses in this view.")
            for c in shown:
                if c.get("id") in seen:
                    continue
                seen.add(c.get("id"))
                cA, cB = st.columns([5, 1])
                cA.write(f"**{c.get('title', '')}** · {', '.join(c.get('days') or [])} · {c.get('start', '')}-{c.get('end', '')}")
                if cB.button("🗑️", key=f"del_course_{c.get('id')}"):
                    _request_delete(gate, EntityKind.COURSE, c.get("id"))
    else:
        with st.expander("Edit assignments & exams", expanded=False):
            if not schedule.agenda:
                st.caption("Nothing to edit.")
            for item in schedule.agenda:
                cA, cB = st.columns([5, 1])
                cA.write(f"**{item.title}** · {item.kind.value} · {item.date_text or 'no date'}")
                if cB.button("🗑️", key=f"del_agenda_{item.kind.value}_{item.id}"):
                    _request_delete(gate, item.kind, item.id, skip_confirm=item.skip_confirm)


# -------------------------------
# UI: widgets
# -------------------------------

def upcoming_view(state: PlannerState, gate: DeleteGate, model: DashboardModel) -> None:
    st.subheader("Upcoming")
    if not model.upcoming:
        _html(render_upcoming(model.upcoming))
        return

    for item in model.upcoming:
        cA, cB, cC = st.columns([1, 8, 1])
        with cA:
            key = f"up_done_{item.kind.value}_{item.id}"
            _bind(key, item.completed)
            st.checkbox(
                "Done",
                key=key,
                label_visibility="collapsed",
                on_change=_on_completed,
                args=(state, item.kind, item.id, key),
            )
        with cB:
            _html(render_upcoming_item(item))
        with cC:
            if st.button("✕", key=f"up_del_{item.kind.value}_{item.id}"):
                _request_delete(gate, item.kind, item.id, skip_confirm=item.skip_confirm)


def habits_view(state: PlannerState, gate: DeleteGate, model: DashboardModel) -> None:
    st.subheader("Daily habits")
    if not model.habits:
        st.caption("No daily habits. Add one!")
        return

    for row in model.habits:
        cA, cB, cC = st.columns([8, 1, 1])
        with cA:
            _html(render_habit(row))
        with cB:
            if st.button("+1", key=f"habit_inc_{row.id}"):
                state.increment_habit(row.id)
                st.rerun()
        with cC:
            if st.button("✕", key=f"habit_del_{row.id}"):
                _request_delete(gate, EntityKind.HABIT, row.id)


def tasks_view(state: PlannerState, gate: DeleteGate, model: DashboardModel) -> None:
    st.subheader("Tasks")
    if not model.tasks:
        st.caption("No tasks.")

    for row in model.tasks:
        cA, cB = st.columns([9, 1])
        with cA:
            key = f"task_done_{row.id}"
            _bind(key, row.completed)
            st.checkbox(
                row.title or "(Untitled)",
                key=key,
                on_change=_on_completed,
                args=(state, EntityKind.TASK, row.id, key),
            )
        with cB:
            if st.button("✕", key=f"task_del_{row.id}"):
                _request_delete(gate, EntityKind.TASK, row.id, skip_confirm=row.skip_confirm)


def notes_view(state: PlannerState, gate: DeleteGate, model: DashboardModel) -> None:
    st.subheader("Notes")
    if not model.notes:
        st.caption("No notes.")

    for row in model.notes:
        cA, cB = st.columns([9, 1])
        with cA:
            _html(render_note(row))
        with cB:
            if st.button("🗑️", key=f"note_del_{row.id}"):
                _request_delete(gate, EntityKind.NOTE, row.id)


# -------------------------------
# UI: add forms
# -------------------------------

def _course_choice(state: PlannerState, key: str) -> str:
    choice = st.selectbox("Course", [NO_COURSE] + state.course_titles(), key=key)
    return "" if choice == NO_COURSE else choice


def add_forms(state: PlannerState) -> None:
    st.subheader("Add")
    tabs = st.tabs(["Course", "Assignment", "Exam", "Habit", "Task", "Note"])

    with tabs[0]:
        with st.form(key="form_course", clear_on_submit=True):
            title = st.text_input("Title", placeholder="Organic Chemistry")
            teacher = st.text_input("Teacher", placeholder="Dr. Rivera")
            days = st.multiselect("Days", WEEKDAYS)
            c1, c2 = st.columns(2)
            start = c1.time_input("Start", value=datetime.time(9, 0))
            end = c2.time_input("End", value=datetime.time(10, 0))
            if st.form_submit_button("Save course"):
                if not title.strip():
                    st.error("Course title is required.")
                else:
                    state.add(EntityKind.COURSE, {
                        "title": title,
                        "teacher": teacher,
                        "days": days,
                        "start": start.strftime("%H:%M"),
                        "end": end.strftime("%H:%M"),
                    })
                    st.rerun()

    with tabs[1]:
        with st.form(key="form_assignment", clear_on_submit=True):
            title = st.text_input("Title", placeholder="Problem set 3")
            course = _course_choice(state, "form_assignment_course")
            due = st.date_input("Due date", value=datetime.date.today())
            priority = st.selectbox("Priority", PRIORITIES)
            if st.form_submit_button("Save assignment"):
                if not title.strip():
                    st.error("Assignment title is required.")
                else:
                    state.add(EntityKind.ASSIGNMENT, {
                        "title": title,
                        "course": course,
                        "dueDate": due.isoformat(),
                        "priority": priority,
                    })
                    st.rerun()

    with tabs[2]:
        with st.form(key="form_exam", clear_on_submit=True):
            title = st.text_input("Title", placeholder="Midterm")
            course = _course_choice(state, "form_exam_course")
            c1, c2 = st.columns(2)
            day = c1.date_input("Date", value=datetime.date.today())
            at = c2.time_input("Time", value=datetime.time(9, 0))
            if st.form_submit_button("Save exam"):
                if not title.strip():
                    st.error("Exam title is required.")
                else:
                    state.add(EntityKind.EXAM, {
                        "title": title,
                        "course": course,
                        "date": day.isoformat(),
                        "time": at.strftime("%H:%M"),
                    })
                    st.rerun()

    with tabs[3]:
        with st.form(key="form_habit", clear_on_submit=True):
            title = st.text_input("Title", placeholder="Drink water")
            c1, c2 = st.columns(2)
            target = c1.number_input("Daily target", min_value=1, max_value=1000, value=8, step=1)
            measure = c2.text_input("Measure", placeholder="glasses")
            if st.form_submit_button("Save habit"):
                if not title.strip():
                    st.error("Habit title is required.")
                else:
                    state.add(EntityKind.HABIT, {"title": title, "target": int(target), "measure": measure})
                    st.rerun()

    with tabs[4]:
        with st.form(key="form_task", clear_on_submit=True):
            title = st.text_input("Task", placeholder="Email advisor")
            if st.form_submit_button("Save task"):
                if not title.strip():
                    st.error("Task title is required.")
                else:
                    state.add(EntityKind.TASK, {"title": title})
                    st.rerun()

    with tabs[5]:
        with st.form(key="form_note", clear_on_submit=True):
            text = st.text_area("Note", height=120)
            if st.form_submit_button("Save note"):
                if not text.strip():
                    st.error("Note can't be empty.")
                else:
                    state.add(EntityKind.NOTE, {"text": text})
                    st.rerun()


# -------------------------------
# Main
# -------------------------------

def main():
    st.set_page_config(page_title="Student Planner", page_icon="🎓", layout="wide")
    init_app_state()

    settings = st.session_state.settings
    state: PlannerState = st.session_state.planner
    cloud: CloudSync = st.session_state.cloud
    gate: DeleteGate = st.session_state.delete_gate

    dark = bool(state.data.get("darkMode", False))
    st.markdown(page_css(dark), unsafe_allow_html=True)
    if dark:
        st.markdown(
            f"<style>.stApp{{background:{THEME_DARK['bg']};color:{THEME_DARK['text-main']};}}</style>",
            unsafe_allow_html=True,
        )

    account_sidebar(cloud)
    options_sidebar(state, settings.media_helper)
    backup_sidebar(state)

    st.fragment(clock_panel, run_every=settings.clock_seconds)()
    confirm_delete_prompt(gate)

    model = build_dashboard(state.data, ViewMode(st.session_state.view_mode), datetime.datetime.now())

    left, right = st.columns([2, 1])
    with left:
        schedule_view(gate, model)
        st.write("---")
        add_forms(state)
    with right:
        upcoming_view(state, gate, model)
        st.write("---")
        habits_view(state, gate, model)
        st.write("---")
        tasks_view(state, gate, model)
        st.write("---")
        notes_view(state, gate, model)

    flush_browser_storage(state)


if __name__ == "__main__":
    main()
