from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from ..registry import CapabilityDescriptor, ConfigField, Metadata
from .base import REFRESH_RATE, TITLE, ok

name = "clock"
title = "Time"

def fetch(cfg: Mapping[str, Any], instance_id=None, test: bool = False) -> dict[str, Any]:
    now = datetime.now()
    return ok({
        "time": now.strftime(str(cfg.get("time_format", "%H:%M"))),
        "date": now.strftime(str(cfg.get("date_format", "%a %b %d, %Y"))),
    })

descriptor = CapabilityDescriptor(
    metadata=Metadata(
        id=name,
        name=title,
        description="Current local time and date",
        category="system",
        icon="clock",
    ),
    fields=(
        TITLE,
        ConfigField(key="time_format", label="Time Format", default="%H:%M", placeholder="%H:%M"),
        ConfigField(key="date_format", label="Date Format", default="%a %b %d, %Y"),
        REFRESH_RATE,
    ),
    fetch=fetch,
)
