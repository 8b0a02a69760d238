from __future__ import annotations

import logging
import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

import yaml

from .models import InstanceId, WidgetInstance
from .observable import Observable, Unsubscribe

log = logging.getLogger(__name__)

Snapshot = tuple[WidgetInstance, ...]


class WidgetStore(Protocol):
    def list_enabled_instances(self) -> Sequence[WidgetInstance]:
        ...


class MemoryWidgetStore:
    """Widget instances held in process, for embedding and tests."""

    def __init__(self, instances: Sequence[WidgetInstance] = ()) -> None:
        self._instances: dict[InstanceId, WidgetInstance] = {}
        self._lock = threading.Lock()
        for inst in instances:
            self.add(inst)

    def add(self, instance: WidgetInstance) -> None:
        with self._lock:
            if instance.id in self._instances:
                raise ValueError(f"Duplicate widget id {instance.id!r}")
            self._instances[instance.id] = instance

    def update(self, instance_id: InstanceId, **changes: Any) -> WidgetInstance:
        with self._lock:
            current = self._instances[instance_id]
            updated = replace(current, **changes)
            self._instances[instance_id] = updated
            return updated

    def remove(self, instance_id: InstanceId) -> None:
        with self._lock:
            self._instances.pop(instance_id, None)

    def list_enabled_instances(self) -> list[WidgetInstance]:
        with self._lock:
            return [i for i in self._instances.values() if i.enabled]


class YamlWidgetStore:
    """Reads the ``widgets:`` list of a YAML file on every call."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(os.path.expanduser(os.path.expandvars(str(path))))

    def list_enabled_instances(self) -> list[WidgetInstance]:
        raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path} must contain a YAML mapping at top level.")
        entries = raw.get("widgets") or []
        if not isinstance(entries, list):
            raise ValueError(f"{self.path}: 'widgets' must be a list.")
        instances = [WidgetInstance.from_mapping(e) for e in entries]
        return [i for i in instances if i.enabled]


def _sort_key(instance: WidgetInstance) -> tuple[int, str]:
    return (instance.order, str(instance.id))


class InstanceSource:
    """Reactive view of the enabled widget instances of a store.

    Subscribers always get the whole snapshot (sorted by display order),
    never a diff: once on subscribe, then whenever ``refresh`` sees a change.
    """

    def __init__(self, store: WidgetStore) -> None:
        self._store = store
        self._channel: Observable[Snapshot] = Observable(())
        self._refresh_lock = threading.Lock()

    @property
    def snapshot(self) -> Snapshot:
        return self._channel.value

    def subscribe(self, listener: Callable[[Snapshot], None]) -> Unsubscribe:
        return self._channel.subscribe(listener)

    def refresh(self) -> bool:
        """Re-read the store; publish and return True when the snapshot changed."""
        with self._refresh_lock:
            instances = [i for i in self._store.list_enabled_instances() if i.enabled]
            snapshot = tuple(sorted(instances, key=_sort_key))
            if snapshot == self._channel.value:
                return False
            log.debug("Instance snapshot changed: %d enabled widget(s)", len(snapshot))
            self._channel.set(snapshot)
            return True
