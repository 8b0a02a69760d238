from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Callable, Mapping

from .models import InstanceId, StatusRecord
from .observable import Observable, Unsubscribe

StatusMap = Mapping[InstanceId, StatusRecord]


class StatusAggregate:
    """Latest status record per instance id.

    The poll scheduler is the only writer. Readers get immutable snapshots,
    either on demand or pushed on every change.
    """

    def __init__(self) -> None:
        self._records: dict[InstanceId, StatusRecord] = {}
        self._lock = threading.RLock()
        self._channel: Observable[StatusMap] = Observable(MappingProxyType({}))

    def replace(self, record: StatusRecord) -> None:
        with self._lock:
            self._records[record.id] = record
            self._channel.set(MappingProxyType(dict(self._records)))

    def remove(self, instance_id: InstanceId) -> bool:
        with self._lock:
            if instance_id not in self._records:
                return False
            del self._records[instance_id]
            self._channel.set(MappingProxyType(dict(self._records)))
        return True

    def clear(self) -> None:
        with self._lock:
            if not self._records:
                return
            self._records.clear()
            self._channel.set(MappingProxyType({}))

    def get(self, instance_id: InstanceId) -> StatusRecord | None:
        return self._records.get(instance_id)

    def snapshot(self) -> StatusMap:
        return self._channel.value

    def subscribe(self, listener: Callable[[StatusMap], None]) -> Unsubscribe:
        return self._channel.subscribe(listener)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._records

    def __len__(self) -> int:
        return len(self._records)
