from __future__ import annotations

import shutil
from typing import Any, Mapping

import psutil

from ..registry import CapabilityDescriptor, ConfigField, Metadata
from .base import REFRESH_RATE, TITLE, ok

name = "system"
title = "System"

def _disks(mounts: list[str]) -> list[dict[str, Any]]:
    disks = []
    for m in mounts:
        try:
            du = shutil.disk_usage(m)
        except OSError:
            continue
        disks.append({
            "mount": m,
            "used_gb": round(du.used / (1024**3), 1),
            "free_gb": round(du.free / (1024**3), 1),
            "pct": round((du.used / du.total) * 100, 1) if du.total else 0.0,
        })
    return disks

def fetch(cfg: Mapping[str, Any], instance_id=None, test: bool = False) -> dict[str, Any]:
    mounts = cfg.get("mounts") or ["/", "/home"]
    if isinstance(mounts, str):
        mounts = [m.strip() for m in mounts.split(",") if m.strip()]
    warn_pct = float(cfg.get("warn_pct", 90))

    disks = _disks(list(mounts))
    vm = psutil.virtual_memory()
    cpu = psutil.cpu_percent(interval=0.2)

    # warn when anything is close to full
    peak = max([cpu, vm.percent] + [d["pct"] for d in disks])
    return ok(
        {
            "cpu_pct": cpu,
            "mem_pct": vm.percent,
            "mem_used_gb": round(vm.used / (1024**3), 1),
            "mem_total_gb": round(vm.total / (1024**3), 1),
            "disks": disks,
        },
        status="warning" if peak >= warn_pct else "online",
    )

def validate(cfg: Mapping[str, Any]) -> bool:
    try:
        return 0 < float(cfg.get("warn_pct", 90)) <= 100
    except (TypeError, ValueError):
        return False

descriptor = CapabilityDescriptor(
    metadata=Metadata(
        id=name,
        name=title,
        description="CPU, memory and disk usage of this host",
        category="system",
        icon="system",
    ),
    fields=(
        TITLE,
        ConfigField(
            key="mounts",
            label="Mount Points",
            default="/,/home",
            description="Comma-separated mount points to report disk usage for",
        ),
        ConfigField(
            key="warn_pct",
            label="Warn above %",
            type="number",
            default=90,
            description="Report a warning when CPU, memory or any disk is above this usage",
        ),
        REFRESH_RATE,
    ),
    fetch=fetch,
    validate=validate,
)
