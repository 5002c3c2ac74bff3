import datetime
import json
import uuid
from typing import Any, Dict, List, Mapping

import pandas as pd

from planner_core import ENTITY_SPECS, EntityKind, agenda_items


def now_stamp() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d_%H%M")


# -------------------------------
# JSON backup
# -------------------------------

def export_backup(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), indent=2, ensure_ascii=False)


def import_backup(text: str) -> Dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("Backup must be a JSON object.")
    return data


# -------------------------------
# CSV export
# -------------------------------

def export_collections_csv(data: Mapping[str, Any]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for spec in ENTITY_SPECS.values():
        rows = [x for x in (data.get(spec.collection) or []) if isinstance(x, dict)]
        df = pd.DataFrame(rows)
        if "days" in df.columns:
            df["days"] = df["days"].apply(lambda d: ", ".join(d) if isinstance(d, list) else d)
        out[spec.collection] = df.to_csv(index=False)
    return out


# -------------------------------
# Calendar export: ICS builder
# -------------------------------

def agenda_events(data: Mapping[str, Any], include_completed: bool = False) -> List[Dict[str, Any]]:
    events = []
    for item in agenda_items(data, datetime.date.today()):
        if item.due is None:
            continue
        if item.completed and not include_completed:
            continue

        label = "Assignment" if item.kind == EntityKind.ASSIGNMENT else "Exam"
        title = f"{label}: {item.title}"
        if item.course:
            title += f" · {item.course}"
        if item.time:
            title += f" at {item.time}"

        events.append({"title": title, "date": item.due, "uid": f"sp-{item.kind.value}-{item.id}@studentplanner"})
    return events


def build_ics_calendar(events: List[Dict[str, Any]], calendar_name: str = "Student Planner") -> str:
    def _escape(s: str) -> str:
        s = str(s or "")
        return (
            s.replace("\\", "\\\\")
             .replace(",", "\\,")
             .replace(";", "\\;")
             .replace("\n", "\\n")
        )

    dtstamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//StudentPlanner//EN",
        f"X-WR-CALNAME:{_escape(calendar_name)}",
        "CALSCALE:GREGORIAN",
    ]

    for e in (events or []):
        d = e.get("date")
        if not isinstance(d, datetime.date):
            continue

        dtstart = d.strftime("%Y%m%d")
        dtend = (d + datetime.timedelta(days=1)).strftime("%Y%m%d")
        uid = e.get("uid") or f"sp-{dtstart}-{uuid.uuid4().hex}@studentplanner"

        lines.extend([
            "BEGIN:VEVENT",
            f"UID:{uid}",
            f"DTSTAMP:{dtstamp}",
            f"DTSTART;VALUE=DATE:{dtstart}",
            f"DTEND;VALUE=DATE:{dtend}",
            f"SUMMARY:{_escape(e.get('title', 'Event'))}",
            "END:VEVENT",
        ])

    lines.append("END:VCALENDAR")
    # RFC 5545 content lines end in CRLF
    return "\r\n".join(lines) + "\r\n"
