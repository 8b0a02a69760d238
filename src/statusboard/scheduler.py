"""One polling loop per widget instance.

Each owned instance has a ticker task that sleeps for the instance's
interval and then asks for a fetch. An instance never has more than one
fetch outstanding: a tick that lands while a fetch is running is dropped,
while the first fetch after (re)scheduling and manual refreshes wait for
the running one and then go.

Snapshots from the instance source are queued and reconciled one at a time
by a single worker task, so the timer set only ever changes on the event
loop and never concurrently with itself.
"""
from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping

from .errors import UNKNOWN_TYPE_PAYLOAD, FetchTimeout, Outcome, OutcomeKind, classify
from .instances import InstanceSource, Snapshot
from .models import InstanceId, StatusRecord, WidgetInstance
from .registry import CapabilityDescriptor, CapabilityRegistry, FetchFn
from .status import StatusAggregate

log = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 15.0

Sleep = Callable[[float], Awaitable[Any]]


def _retrieve(fut: asyncio.Future) -> None:
    # Abandoned worker threads may still fail after their deadline.
    if not fut.cancelled() and fut.exception() is not None:
        log.debug("Abandoned fetch finished with %r", fut.exception())


def _same_schedule(a: WidgetInstance, b: WidgetInstance) -> bool:
    """True when two versions of an instance differ at most in display order."""
    return a.type_id == b.type_id and a.enabled == b.enabled and dict(a.config) == dict(b.config)


def _is_async(fetch: FetchFn) -> bool:
    return inspect.iscoroutinefunction(fetch) or inspect.iscoroutinefunction(getattr(fetch, "__call__", None))


class _Slot:
    __slots__ = ("instance", "ticker", "fetch")

    def __init__(self, instance: WidgetInstance) -> None:
        self.instance = instance
        self.ticker: asyncio.Task | None = None
        self.fetch: asyncio.Task | None = None


class PollScheduler:
    def __init__(
        self,
        registry: CapabilityRegistry,
        aggregate: StatusAggregate,
        *,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self._registry = registry
        self._aggregate = aggregate
        self._fetch_timeout = fetch_timeout
        self._sleep = sleep
        self._clock = clock

        self._slots: dict[InstanceId, _Slot] = {}
        # Outstanding work per instance id: the fetch task, or the worker
        # thread's future once a sync fetch has been abandoned.
        self._busy: dict[InstanceId, asyncio.Future] = {}
        self._pending: set[InstanceId] = set()
        # Worker-thread futures left running past their deadline.
        self._abandoned: set[asyncio.Future] = set()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Snapshot] | None = None
        self._worker: asyncio.Task | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False

    # -- lifecycle ---------------------------------------------------------

    async def start(self, source: InstanceSource | None = None) -> None:
        if self._worker is not None:
            raise RuntimeError("Scheduler already started")
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._closed = False
        self._worker = self._loop.create_task(self._reconcile_worker(), name="statusboard-reconcile")
        if source is not None:
            self._unsubscribe = source.subscribe(self.submit)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._closed = True
        tasks: list[asyncio.Task] = []
        for iid in list(self._slots):
            slot = self._slots[iid]
            tasks.extend(t for t in (slot.ticker, slot.fetch) if t is not None)
            self._unschedule(iid)
        if self._worker is not None:
            self._worker.cancel()
            tasks.append(self._worker)
            self._worker = None
        self._pending.clear()
        await asyncio.gather(*tasks, return_exceptions=True)
        log.info("Poll scheduler stopped")

    # -- snapshots ---------------------------------------------------------

    def submit(self, snapshot: Iterable[WidgetInstance]) -> None:
        """Queue a snapshot for reconciliation. Safe to call from any thread."""
        if self._loop is None or self._queue is None or self._closed:
            log.debug("Ignoring snapshot: scheduler not running")
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, tuple(snapshot))

    async def _reconcile_worker(self) -> None:
        assert self._queue is not None
        while True:
            snapshot = await self._queue.get()
            try:
                self.reconcile(snapshot)
            except Exception:
                log.exception("Reconciliation failed")
            finally:
                self._queue.task_done()

    def reconcile(self, snapshot: Iterable[WidgetInstance]) -> None:
        """Bring the owned timers in line with ``snapshot``. Loop thread only."""
        desired: dict[InstanceId, WidgetInstance] = {}
        for inst in snapshot:
            if inst.id in desired:
                log.warning("Duplicate widget id %r in snapshot; keeping the first", inst.id)
                continue
            desired[inst.id] = inst

        for iid in [i for i in self._slots if i not in desired]:
            self._unschedule(iid)
            self._aggregate.remove(iid)

        for iid, inst in desired.items():
            slot = self._slots.get(iid)
            if slot is not None and slot.instance == inst:
                continue
            if slot is not None and _same_schedule(slot.instance, inst):
                # display order only; the timer and the record stay
                slot.instance = inst
                continue
            try:
                if slot is not None:
                    log.info("Widget %r reconfigured; restarting its timer", iid)
                    self._unschedule(iid)
                self._schedule(inst)
            except Exception:
                log.exception("Could not schedule widget %r; skipping it", iid)
                self._unschedule(iid)
                self._aggregate.remove(iid)

    def _schedule(self, instance: WidgetInstance) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        interval = instance.interval
        slot = _Slot(instance)
        self._slots[instance.id] = slot
        slot.ticker = loop.create_task(self._tick(slot), name=f"statusboard-timer-{instance.id}")
        log.info("Set up timer for %s (%r): %ss interval", instance.type_id, instance.id, interval)
        self._request(instance.id, coalesce=True)

    def _unschedule(self, instance_id: InstanceId) -> None:
        slot = self._slots.pop(instance_id, None)
        if slot is None:
            return
        self._pending.discard(instance_id)
        if slot.ticker is not None:
            slot.ticker.cancel()
        if slot.fetch is not None and not slot.fetch.done():
            slot.fetch.cancel()
        log.info("Cancelled timer for %s (%r)", slot.instance.type_id, instance_id)

    async def _tick(self, slot: _Slot) -> None:
        iid = slot.instance.id
        while True:
            await self._sleep(slot.instance.interval)
            if self._slots.get(iid) is not slot:
                return
            self._request(iid, coalesce=False)

    # -- fetching ----------------------------------------------------------

    def trigger_refresh(self, instance_id: InstanceId) -> bool:
        """Fetch now, or as soon as the outstanding fetch finishes.

        Returns False when the instance is not scheduled.
        """
        return self._request(instance_id, coalesce=True)

    def _request(self, instance_id: InstanceId, *, coalesce: bool) -> bool:
        slot = self._slots.get(instance_id)
        if slot is None or self._closed:
            return False
        if instance_id in self._busy:
            if coalesce:
                self._pending.add(instance_id)
                return True
            log.debug("Dropping tick for %r: fetch still outstanding", instance_id)
            return False
        assert self._loop is not None
        task = self._loop.create_task(self._poll(slot), name=f"statusboard-fetch-{instance_id}")
        slot.fetch = task
        self._hold(instance_id, task)
        return True

    def _hold(self, instance_id: InstanceId, work: asyncio.Future) -> None:
        self._busy[instance_id] = work
        work.add_done_callback(functools.partial(self._release, instance_id))

    def _release(self, instance_id: InstanceId, work: asyncio.Future) -> None:
        if work in self._abandoned:
            self._abandoned.discard(work)
            if not work.cancelled() and work.exception() is None and inspect.iscoroutine(work.result()):
                work.result().close()
        if isinstance(work, asyncio.Task) and not work.cancelled() and work.exception() is not None:
            log.error("Fetch task for %r crashed", instance_id, exc_info=work.exception())
        if self._busy.get(instance_id) is not work:
            return
        del self._busy[instance_id]
        if instance_id in self._pending:
            self._pending.discard(instance_id)
            self._request(instance_id, coalesce=True)

    def is_fetching(self, instance_id: InstanceId) -> bool:
        return instance_id in self._busy

    @property
    def owned_ids(self) -> frozenset[InstanceId]:
        return frozenset(self._slots)

    def interval_of(self, instance_id: InstanceId) -> int | None:
        slot = self._slots.get(instance_id)
        return slot.instance.interval if slot else None

    async def _poll(self, slot: _Slot) -> None:
        instance = slot.instance
        descriptor = self._registry.get(instance.type_id)
        started = time.monotonic()
        if descriptor is None or descriptor.fetch is None:
            log.info("No fetch available for %s (%r); reporting online", instance.type_id, instance.id)
            outcome = classify(UNKNOWN_TYPE_PAYLOAD)
        else:
            config = {**descriptor.defaults(), **instance.config}
            try:
                payload = await self._call(descriptor.fetch, config, instance.id, False)
            except Exception as e:
                outcome = classify(error=e)
            else:
                outcome = classify(payload)
        elapsed_ms = (time.monotonic() - started) * 1000
        self._publish(slot, descriptor, outcome, elapsed_ms)

    async def _call(
        self,
        fetch: FetchFn,
        config: Mapping[str, Any],
        instance_id: InstanceId | None,
        test: bool,
    ) -> Any:
        if _is_async(fetch):
            return await self._within(fetch(config, instance_id, test), self._fetch_timeout)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._fetch_timeout
        work = loop.run_in_executor(None, functools.partial(fetch, config, instance_id, test))
        work.add_done_callback(_retrieve)
        try:
            result = await self._within(asyncio.shield(work), self._fetch_timeout)
        finally:
            # The thread cannot be interrupted; it keeps the slot until it returns.
            if not work.done() and instance_id is not None and instance_id in self._busy:
                self._abandoned.add(work)
                self._hold(instance_id, work)
        if inspect.isawaitable(result):
            # plain callables may hand back a coroutine; it shares the deadline
            result = await self._within(result, max(deadline - loop.time(), 0))
        return result

    async def _within(self, awaitable: Awaitable[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            raise FetchTimeout(f"No response within {self._fetch_timeout:g}s") from None

    def _publish(
        self,
        slot: _Slot,
        descriptor: CapabilityDescriptor | None,
        outcome: Outcome,
        elapsed_ms: float,
    ) -> None:
        instance = slot.instance
        iid = instance.id
        if self._closed or self._slots.get(iid) is not slot:
            log.debug("Discarding result for %r: no longer scheduled", iid)
            return

        if outcome.fatal:
            log.warning("Fetch for %s (%r) got no usable response: %s", instance.type_id, iid, outcome.error)
            self._aggregate.remove(iid)
            return
        if outcome.kind is OutcomeKind.RECOVERABLE:
            log.warning("%s (%r) returned error: %s", instance.type_id, iid, outcome.error)

        name = instance.title or (descriptor.metadata.name if descriptor else None) or instance.type_id
        record = StatusRecord(
            id=iid,
            name=name,
            type_id=instance.type_id,
            state=outcome.state or "online",
            last_updated=self._clock(),
            stats=dict(outcome.stats),
            error=outcome.error,
            latency=outcome.ping if outcome.ping is not None else round(elapsed_ms, 1),
            icon=descriptor.metadata.icon if descriptor else None,
            data=dict(outcome.payload),
        )
        self._aggregate.replace(record)
        log.debug("Updated %s (%r): %s (interval: %ss)", instance.type_id, iid, record.state, instance.interval)

    # -- validation --------------------------------------------------------

    async def probe(self, type_id: str, config: Mapping[str, Any]) -> Outcome:
        """Validation-only fetch for a configuration that is not saved yet."""
        descriptor = self._registry.get(type_id)
        if descriptor is None:
            return Outcome(OutcomeKind.RECOVERABLE, state="offline", error=f"Unknown integration type {type_id!r}")
        missing = descriptor.missing_required(config)
        if missing:
            return Outcome(
                OutcomeKind.RECOVERABLE,
                state="offline",
                error=f"Missing required field(s): {', '.join(missing)}",
            )
        if descriptor.validate is not None:
            try:
                valid = descriptor.validate(config)
            except Exception as e:
                log.warning("Validator for %s failed: %s", type_id, e)
                return Outcome(OutcomeKind.RECOVERABLE, state="offline", error=f"Configuration is not valid: {e}")
            if not valid:
                return Outcome(OutcomeKind.RECOVERABLE, state="offline", error="Configuration is not valid")
        if descriptor.fetch is None:
            return classify(UNKNOWN_TYPE_PAYLOAD)
        try:
            payload = await self._call(descriptor.fetch, {**descriptor.defaults(), **config}, None, True)
        except Exception as e:
            return classify(error=e)
        return classify(payload)

    async def drain(self) -> None:
        """Wait until queued snapshots are reconciled and no fetch is outstanding.

        Worker threads already abandoned at their deadline are not waited for.
        """
        await asyncio.sleep(0)
        while True:
            if self._queue is not None and self._worker is not None:
                await self._queue.join()
            live = [f for f in self._busy.values() if f not in self._abandoned]
            outstanding = [f for f in live if not f.done()]
            if outstanding:
                await asyncio.wait(outstanding)
                continue
            # let done-callbacks release slots and start coalesced fetches
            await asyncio.sleep(0)
            settled = all(f in self._abandoned for f in self._busy.values())
            if settled and (self._worker is None or self._queue.empty()):
                return
