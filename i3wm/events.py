"""EventHub — fans decoded Event messages out to per-channel listeners."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from .protocol import EVENT_CODES, UNKNOWN_EVENT, Event

log = logging.getLogger(__name__)

CHANNELS = (*EVENT_CODES, UNKNOWN_EVENT)


def check_name(name: str) -> str:
    if name not in CHANNELS:
        raise ValueError(f"unknown event name {name!r}, expected one of {', '.join(CHANNELS)}")
    return name


class EventHub:
    """Maps event codes to named channels and calls their listeners.

    Codes outside the known table land on the ``unknown`` channel.
    """

    def __init__(self):
        self._listeners: dict[str, list[Callable]] = {name: [] for name in CHANNELS}
        self._subscribed: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def subscribed(self) -> frozenset[str]:
        return frozenset(self._subscribed)

    @property
    def closed(self) -> bool:
        return self._closed

    def listeners(self, name: str) -> list[Callable]:
        return list(self._listeners[check_name(name)])

    def on(self, name: str, listener: Callable):
        """Register ``listener(event)`` for channel ``name``."""
        self._listeners[check_name(name)].append(listener)

    def off(self, name: str, listener: Callable) -> bool:
        """Remove one registration of ``listener``. False if it wasn't there."""
        try:
            self._listeners[check_name(name)].remove(listener)
        except ValueError:
            return False
        return True

    def mark_subscribed(self, names: Iterable[str]):
        self._subscribed.update(check_name(n) for n in names)

    def emit(self, event: Event) -> int:
        """Deliver ``event`` to its channel. Returns the number of listeners called."""
        if self._closed:
            return 0
        name = event.name
        if name == UNKNOWN_EVENT:
            log.debug("Event with unknown code %d", event.code)
        called = 0
        for listener in list(self._listeners[name]):
            called += 1
            try:
                result = listener(event)
            except Exception:
                log.warning("Listener error for %s event", name, exc_info=True)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        return called

    def close(self):
        """No listener fires after this."""
        self._closed = True
        for listeners in self._listeners.values():
            listeners.clear()
        for task in list(self._tasks):
            task.cancel()

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.warning("Listener error", exc_info=task.exception())
