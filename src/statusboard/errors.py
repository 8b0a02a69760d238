"""Fetch payload contract and outcome classification.

Every fetch either returns a payload mapping or raises. Classification,
in order:

1. ``success`` is ``False``: the remote answered with an error. RECOVERABLE,
   published as an ``offline`` record carrying the error message.
2. The fetch raised, timed out, or returned something that is not a
   mapping: no usable response. FATAL for this cycle, the instance's
   record is withdrawn.
3. Anything else: SUCCESS. State is ``online`` unless the payload says
   ``offline`` or ``warning``.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping

DEFAULT_ERROR = "Integration returned an error"

UNKNOWN_TYPE_PAYLOAD: Mapping[str, Any] = {"success": True, "status": "online", "stats": {}}


class ServiceError(Exception):
    """A remote service answered, but with an error response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FetchTimeout(Exception):
    pass


def describe_http_error(status: int, service: str, reason: str = "") -> str:
    messages = {
        400: "Invalid widget ID or configuration",
        401: "Authentication failed - check API key",
        403: "Access forbidden - API key may be invalid",
        404: f"Widget not found or {service} API not found",
        408: f"Connection timeout - {service} is slow to respond",
        500: f"Internal server error in {service}",
        502: f"Connection refused - {service} may be offline",
        503: f"{service} service unavailable",
    }
    if status in messages:
        return messages[status]
    return f"HTTP {status}: {reason}".rstrip(": ")


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    state: str | None = None
    stats: Mapping[str, Any] = field(default_factory=dict)
    error: str | None = None
    ping: float | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def fatal(self) -> bool:
        return self.kind is OutcomeKind.FATAL


def classify(payload: Any = None, error: BaseException | None = None) -> Outcome:
    if error is not None:
        return Outcome(OutcomeKind.FATAL, error=_describe_exception(error))
    if not isinstance(payload, Mapping):
        return Outcome(OutcomeKind.FATAL, error=f"Malformed payload: {type(payload).__name__}")

    if payload.get("success") is False:
        message = payload.get("error") or DEFAULT_ERROR
        return Outcome(
            OutcomeKind.RECOVERABLE,
            state="offline",
            error=str(message),
            payload=payload,
        )

    status = payload.get("status")
    state = status if status in ("offline", "warning") else "online"
    stats = payload.get("stats")
    ping = payload.get("ping")
    return Outcome(
        OutcomeKind.SUCCESS,
        state=state,
        stats=stats if isinstance(stats, Mapping) else {},
        ping=float(ping) if isinstance(ping, (int, float)) and not isinstance(ping, bool) else None,
        payload=payload,
    )


def _describe_exception(error: BaseException) -> str:
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__
