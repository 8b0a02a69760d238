from __future__ import annotations

from typing import Any, Mapping

import requests

from ..errors import ServiceError, describe_http_error
from ..registry import ConfigField

TITLE = ConfigField(
    key="title",
    label="Widget Title",
    placeholder="Custom title for this widget",
)

REFRESH_RATE = ConfigField(
    key="refresh_rate",
    label="Refresh Rate (seconds)",
    type="number",
    default=30,
    description="How often to refresh the statistics (10-300 seconds)",
)


def ok(stats: Mapping[str, Any], status: str = "online", **extra: Any) -> dict[str, Any]:
    return {"success": True, "status": status, "stats": dict(stats), **extra}


def failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


def request_json(
    method: str,
    url: str,
    service: str,
    *,
    timeout: float = 10,
    **kwargs: Any,
) -> Any:
    """Call ``url`` and decode JSON.

    An HTTP error status raises ServiceError with a readable message;
    transport failures and undecodable bodies propagate as-is.
    """
    r = requests.request(method, url, timeout=timeout, **kwargs)
    if not r.ok:
        message = None
        try:
            body = r.json()
            if isinstance(body, dict):
                message = body.get("error")
        except ValueError:
            pass
        raise ServiceError(message or describe_http_error(r.status_code, service, r.reason or ""), r.status_code)
    return r.json()

