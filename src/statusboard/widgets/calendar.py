from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Mapping
import os

from dateutil import tz
from icalendar import Calendar
import caldav

from ..registry import CapabilityDescriptor, ConfigField, Metadata
from .base import REFRESH_RATE, TITLE, failure, ok

name = "calendar"
title = "Today"

CALDAV_TIMEOUT = 10

def _expand(path: str) -> str:
    return os.path.expanduser(os.path.expandvars(path))

def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())

def _parse_ics_events(ics_text: str) -> list[dict]:
    cal = Calendar.from_ical(ics_text)
    events = []
    for component in cal.walk():
        if component.name != "VEVENT":
            continue
        dtstart = component.get("dtstart")
        dtend = component.get("dtend")
        summary = component.get("summary")
        if not dtstart or not summary:
            continue
        events.append({
            "summary": str(summary),
            "start": _as_datetime(dtstart.dt),
            "end": _as_datetime(dtend.dt) if dtend else None,
        })
    return events

def _load_from_ics(path: str) -> list[dict]:
    p = Path(_expand(path))
    if not p.exists():
        return []
    return _parse_ics_events(p.read_text(encoding="utf-8"))

def _caldav_calendars(url: str, username: str, password: str) -> list:
    client = caldav.DAVClient(url=url, username=username, password=password, timeout=CALDAV_TIMEOUT)
    return client.principal().calendars()

def _load_from_caldav(url: str, username: str, password: str) -> list[dict]:
    calendars = _caldav_calendars(url, username, password)
    if not calendars:
        return []
    results = calendars[0].date_search(
        start=datetime.now(timezone.utc) - timedelta(days=1),
        end=datetime.now(timezone.utc) + timedelta(days=1),
    )
    events = []
    for r in results:
        events.extend(_parse_ics_events(r.data))
    return events

def upcoming(events: list[dict], now: datetime, horizon_hours: int, max_events: int) -> list[dict]:
    horizon = now + timedelta(hours=horizon_hours)
    found = []
    for e in events:
        start = e["start"]
        if start.tzinfo is None:
            start = start.replace(tzinfo=now.tzinfo)
        if now <= start <= horizon:
            found.append({"summary": e["summary"], "start": start})
    found.sort(key=lambda x: x["start"])
    return [
        {"time": ev["start"].strftime("%H:%M"), "summary": ev["summary"]}
        for ev in found[:max_events]
    ]

def fetch(cfg: Mapping[str, Any], instance_id=None, test: bool = False) -> dict[str, Any]:
    source = str(cfg.get("source", "ics")).lower()
    horizon_hours = int(cfg.get("horizon_hours", 12))
    max_events = int(cfg.get("max_events", 5))

    if source == "ics":
        events = _load_from_ics(str(cfg.get("ics_path", "")))
    elif source == "caldav":
        url = str(cfg.get("caldav_url", "")).strip()
        user = str(cfg.get("caldav_username", "")).strip()
        pw = str(cfg.get("caldav_password", "")).strip()
        if not (url and user and pw):
            return failure("CalDAV configured but missing url/username/password")
        if test:
            return ok({"calendars": len(_caldav_calendars(url, user, pw))})
        events = _load_from_caldav(url, user, pw)
    else:
        return failure(f"Unknown calendar source: {source}")

    now = datetime.now(tz.tzlocal())
    return ok({"events": upcoming(events, now, horizon_hours, max_events)})

descriptor = CapabilityDescriptor(
    metadata=Metadata(
        id=name,
        name="Calendar",
        description="Upcoming events from an ICS file or a CalDAV server",
        category="custom",
        icon="calendar",
    ),
    fields=(
        TITLE,
        ConfigField(
            key="source",
            label="Source",
            type="select",
            default="ics",
            options=(("ics", "ICS file"), ("caldav", "CalDAV")),
        ),
        ConfigField(key="ics_path", label="ICS Path", placeholder="~/calendar.ics"),
        ConfigField(key="caldav_url", label="CalDAV URL", type="url"),
        ConfigField(key="caldav_username", label="CalDAV Username", credential=True),
        ConfigField(key="caldav_password", label="CalDAV Password", type="password", credential=True),
        ConfigField(key="horizon_hours", label="Look Ahead (hours)", type="number", default=12),
        ConfigField(key="max_events", label="Max Events", type="number", default=5),
        REFRESH_RATE,
    ),
    fetch=fetch,
)
