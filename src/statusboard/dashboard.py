from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .config import Config
from .errors import Outcome
from .instances import InstanceSource, WidgetStore, YamlWidgetStore
from .models import InstanceId, StatusRecord
from .observable import Unsubscribe
from .registry import CapabilityRegistry
from .scheduler import DEFAULT_FETCH_TIMEOUT, PollScheduler
from .status import StatusAggregate, StatusMap
from .widgets import register_builtin

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardData:
    results: list[StatusRecord]
    missing: list[InstanceId]


class Dashboard:
    """Wires a widget store to the poll scheduler and owns their lifetime.

    ``start``/``stop`` (or ``async with``) bound everything it creates: the
    scheduler's tasks, the store reload loop and the instance subscription.
    """

    def __init__(
        self,
        store: WidgetStore,
        registry: CapabilityRegistry | None = None,
        *,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        reload_seconds: float | None = 5.0,
    ) -> None:
        self.registry = registry if registry is not None else register_builtin(CapabilityRegistry())
        self.source = InstanceSource(store)
        self.status = StatusAggregate()
        self.scheduler = PollScheduler(self.registry, self.status, fetch_timeout=fetch_timeout)
        self._reload_seconds = reload_seconds
        self._reloader: asyncio.Task | None = None

    @classmethod
    def from_config(cls, cfg: Config, registry: CapabilityRegistry | None = None) -> "Dashboard":
        return cls(
            YamlWidgetStore(cfg.store_path),
            registry,
            fetch_timeout=cfg.fetch_timeout,
            reload_seconds=cfg.reload_seconds,
        )

    async def start(self) -> None:
        await self.refresh_instances()
        await self.scheduler.start(self.source)
        if self._reload_seconds:
            self._reloader = asyncio.create_task(self._reload_loop(), name="statusboard-reload")

    async def stop(self) -> None:
        if self._reloader is not None:
            self._reloader.cancel()
            await asyncio.gather(self._reloader, return_exceptions=True)
            self._reloader = None
        await self.scheduler.stop()

    async def __aenter__(self) -> "Dashboard":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def refresh_instances(self) -> bool:
        """Re-read the store; a failing store keeps the last good snapshot."""
        try:
            return await asyncio.to_thread(self.source.refresh)
        except Exception:
            log.exception("Could not read widget store; keeping current widgets")
            return False

    async def _reload_loop(self) -> None:
        assert self._reload_seconds
        while True:
            await asyncio.sleep(self._reload_seconds)
            await self.refresh_instances()

    async def run(self, stop: asyncio.Event) -> None:
        async with self:
            await stop.wait()

    def subscribe_status(self, listener: Callable[[StatusMap], None]) -> Unsubscribe:
        return self.status.subscribe(listener)

    def trigger_refresh(self, instance_id: InstanceId) -> bool:
        return self.scheduler.trigger_refresh(instance_id)

    async def probe(self, type_id: str, config: Mapping[str, Any]) -> Outcome:
        return await self.scheduler.probe(type_id, config)

    async def collect_all(self) -> DashboardData:
        """Fetch every enabled widget once and report what came back."""
        async with self:
            await self.scheduler.drain()
            statuses = self.status.snapshot()
            order = [inst.id for inst in self.source.snapshot]
        return DashboardData(
            results=[statuses[i] for i in order if i in statuses],
            missing=[i for i in order if i not in statuses],
        )
