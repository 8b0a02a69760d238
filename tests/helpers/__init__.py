"""Test doubles shared across the suite."""

import asyncio
from collections import deque

from statusboard.models import WidgetInstance
from statusboard.registry import CapabilityDescriptor, Metadata


class ManualClock:
    """Stands in for asyncio.sleep; timers only fire on advance()."""

    def __init__(self):
        self.sleeps = []
        self._waiters = []

    async def sleep(self, seconds):
        fut = asyncio.get_running_loop().create_future()
        self.sleeps.append(seconds)
        self._waiters.append(fut)
        await fut

    @property
    def waiting(self):
        return sum(1 for f in self._waiters if not f.done())

    def advance(self):
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(None)


class FakeIntegration:
    """Async fetch whose results are scripted; counts concurrent calls."""

    def __init__(self, type_id="fake", results=None, fields=(), validate=None):
        self.type_id = type_id
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.gate = None
        self.default = {"success": True, "stats": {"n": 1}}
        self.results = deque(results or [])
        self.fields = tuple(fields)
        self.validate = validate

    async def fetch(self, config, instance_id, test):
        self.calls.append((instance_id, dict(config), test))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            result = self.results.popleft() if self.results else self.default
            if isinstance(result, BaseException):
                raise result
            if callable(result):
                return await result()
            return result
        finally:
            self.active -= 1

    @property
    def descriptor(self):
        return CapabilityDescriptor(
            metadata=Metadata(id=self.type_id, name="Fake", category="custom", icon="fake"),
            fields=self.fields,
            fetch=self.fetch,
            validate=self.validate,
        )


async def spin(times=10):
    for _ in range(times):
        await asyncio.sleep(0)


def widget(id, type_id="fake", order=0, **config):
    return WidgetInstance(id=id, type_id=type_id, config=config, order=order)