from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

DEFAULT_REFRESH_RATE = 30
MIN_REFRESH_RATE = 10
MAX_REFRESH_RATE = 300

STATES = ("online", "offline", "warning")

InstanceId = int | str


def refresh_rate(config: Mapping[str, Any]) -> int:
    """Polling period in seconds for a widget config, clamped to 10..300."""
    raw = config.get("refresh_rate") or DEFAULT_REFRESH_RATE
    try:
        rate = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        rate = DEFAULT_REFRESH_RATE
    return max(MIN_REFRESH_RATE, min(MAX_REFRESH_RATE, rate))


def _freeze(config: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(config or {}))


@dataclass(frozen=True)
class WidgetInstance:
    id: InstanceId
    type_id: str
    config: Mapping[str, Any] = field(default_factory=dict)
    enabled: bool = True
    order: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "config", _freeze(self.config))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WidgetInstance):
            return NotImplemented
        return (
            self.id == other.id
            and self.type_id == other.type_id
            and dict(self.config) == dict(other.config)
            and self.enabled == other.enabled
            and self.order == other.order
        )

    def __hash__(self) -> int:
        return hash((self.id, self.type_id, self.enabled, self.order))

    @property
    def interval(self) -> int:
        return refresh_rate(self.config)

    @property
    def title(self) -> str | None:
        title = self.config.get("title")
        return str(title) if title else None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "WidgetInstance":
        if "id" not in raw or "type" not in raw:
            raise ValueError(f"Widget entries need 'id' and 'type': {dict(raw)!r}")
        config = raw.get("config") or {}
        if not isinstance(config, Mapping):
            raise ValueError(f"Widget {raw['id']!r}: config must be a mapping")
        return cls(
            id=raw["id"],
            type_id=str(raw["type"]),
            config=config,
            enabled=bool(raw.get("enabled", True)),
            order=int(raw.get("order", 0)),
        )


@dataclass(frozen=True)
class StatusRecord:
    id: InstanceId
    name: str
    type_id: str
    state: str
    last_updated: float
    stats: Mapping[str, Any] = field(default_factory=dict)
    error: str | None = None
    latency: float | None = None
    icon: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.state not in STATES:
            raise ValueError(f"Unknown state {self.state!r}. Expected one of {STATES}")
