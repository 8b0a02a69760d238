from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .observable import Observable, Unsubscribe

log = logging.getLogger(__name__)

CATEGORIES = ("system", "service", "monitoring", "media", "network", "storage", "custom")
FIELD_TYPES = ("text", "number", "boolean", "select", "password", "url", "email")

REDACTED = "********"

FetchFn = Callable[..., Any]
ValidateFn = Callable[[Mapping[str, Any]], bool]


@dataclass(frozen=True)
class Metadata:
    id: str
    name: str
    description: str = ""
    category: str = "custom"
    icon: str = ""
    version: str = "1.0.0"
    author: str = ""

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category {self.category!r}. Supported: {list(CATEGORIES)}")


@dataclass(frozen=True)
class ConfigField:
    key: str
    label: str
    type: str = "text"
    required: bool = False
    default: Any = None
    credential: bool = False
    description: str = ""
    placeholder: str = ""
    options: tuple[tuple[Any, str], ...] = ()

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type {self.type!r} for {self.key!r}")


@dataclass(frozen=True)
class CapabilityDescriptor:
    """What an integration type can do: describe, fetch and validate."""

    metadata: Metadata
    fields: tuple[ConfigField, ...] = ()
    fetch: FetchFn | None = None
    validate: ValidateFn | None = None

    @property
    def id(self) -> str:
        return self.metadata.id

    def defaults(self) -> dict[str, Any]:
        return {f.key: f.default for f in self.fields if f.default is not None}

    def missing_required(self, config: Mapping[str, Any]) -> list[str]:
        missing = []
        for f in self.fields:
            if not f.required:
                continue
            value = config.get(f.key)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(f.key)
        return missing

    def redact(self, config: Mapping[str, Any]) -> dict[str, Any]:
        secret = {f.key for f in self.fields if f.credential}
        return {k: (REDACTED if k in secret and v else v) for k, v in config.items()}


class CapabilityRegistry:
    """Integration type id -> capability descriptor.

    Read-mostly: lookups take no lock, registration and removal are
    serialized. Built explicitly and passed to whoever needs it.
    """

    def __init__(self, descriptors: Sequence[CapabilityDescriptor] = ()) -> None:
        self._descriptors: dict[str, CapabilityDescriptor] = {}
        self._lock = threading.Lock()
        self._available: Observable[tuple[CapabilityDescriptor, ...]] = Observable(())
        for d in descriptors:
            self.register(d)

    def register(self, descriptor: CapabilityDescriptor) -> None:
        with self._lock:
            updated = dict(self._descriptors)
            updated.pop(descriptor.id, None)
            updated[descriptor.id] = descriptor
            self._descriptors = updated
            available = tuple(updated.values())
        self._available.set(available)
        log.debug("Registered integration: %s (%s)", descriptor.metadata.name, descriptor.id)

    def unregister(self, type_id: str) -> None:
        with self._lock:
            if type_id not in self._descriptors:
                return
            updated = dict(self._descriptors)
            del updated[type_id]
            self._descriptors = updated
            available = tuple(updated.values())
        self._available.set(available)
        log.debug("Unregistered integration: %s", type_id)

    def get(self, type_id: str) -> CapabilityDescriptor | None:
        return self._descriptors.get(type_id)

    def all(self) -> list[CapabilityDescriptor]:
        return list(self._descriptors.values())

    def list_by_category(self, category: str) -> list[CapabilityDescriptor]:
        return [d for d in self._descriptors.values() if d.metadata.category == category]

    def subscribe(self, listener: Callable[[tuple[CapabilityDescriptor, ...]], None]) -> Unsubscribe:
        return self._available.subscribe(listener)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
