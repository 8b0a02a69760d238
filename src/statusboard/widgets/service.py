from __future__ import annotations

import time
from typing import Any, Mapping
from urllib.parse import urlparse

import requests

from ..errors import describe_http_error
from ..registry import CapabilityDescriptor, ConfigField, Metadata
from .base import REFRESH_RATE, TITLE, failure, ok

name = "http"
title = "HTTP Service"

def fetch(cfg: Mapping[str, Any], instance_id=None, test: bool = False) -> dict[str, Any]:
    url = str(cfg.get("server_url", "")).strip()
    if not url:
        return failure("server_url not set")
    service = str(cfg.get("title") or urlparse(url).netloc or url)
    timeout = float(cfg.get("timeout", 10))
    slow_ms = float(cfg.get("slow_ms", 1000))

    headers = {}
    if cfg.get("api_key"):
        headers[str(cfg.get("api_key_header") or "X-Api-Key")] = str(cfg["api_key"])

    started = time.monotonic()
    r = requests.get(url, headers=headers, timeout=timeout, verify=bool(cfg.get("verify_tls", True)))
    ping = round((time.monotonic() - started) * 1000, 1)

    expected = int(cfg.get("expected_status") or 0)
    if (expected and r.status_code != expected) or (not expected and not r.ok):
        return failure(describe_http_error(r.status_code, service, r.reason or ""))

    return ok(
        {"status_code": r.status_code, "response_ms": ping},
        status="warning" if ping > slow_ms else "online",
        ping=ping,
    )

def validate(cfg: Mapping[str, Any]) -> bool:
    parsed = urlparse(str(cfg.get("server_url", "")).strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)

descriptor = CapabilityDescriptor(
    metadata=Metadata(
        id=name,
        name=title,
        description="Reachability and response time of any HTTP endpoint",
        category="service",
        icon="http",
    ),
    fields=(
        TITLE,
        ConfigField(
            key="server_url",
            label="Server URL",
            type="url",
            required=True,
            placeholder="http://192.168.1.100:8989",
            description="The URL to check",
        ),
        ConfigField(
            key="api_key",
            label="API Key",
            type="password",
            credential=True,
            description="Sent in the API key header when set",
        ),
        ConfigField(key="api_key_header", label="API Key Header", default="X-Api-Key"),
        ConfigField(key="expected_status", label="Expected Status", type="number",
                    description="Exact status code to expect; any 2xx when empty"),
        ConfigField(key="slow_ms", label="Slow above (ms)", type="number", default=1000),
        ConfigField(key="timeout", label="Timeout (seconds)", type="number", default=10),
        ConfigField(key="verify_tls", label="Verify TLS", type="boolean", default=True),
        REFRESH_RATE,
    ),
    fetch=fetch,
    validate=validate,
)
