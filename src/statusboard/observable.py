from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class Observable(Generic[T]):
    """A value holder that pushes its full current value to subscribers.

    New subscribers receive the current value immediately. Unsubscribing is
    explicit: ``subscribe`` returns the callable that detaches the listener.
    """

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._listeners: dict[int, Callable[[T], None]] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, listener: Callable[[T], None]) -> Unsubscribe:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener
            value = self._value
        self._deliver(listener, value)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            listeners = list(self._listeners.values())
        for listener in listeners:
            self._deliver(listener, value)

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    @staticmethod
    def _deliver(listener: Callable[[T], None], value: T) -> None:
        try:
            listener(value)
        except Exception:
            log.exception("Subscriber %r failed", listener)
