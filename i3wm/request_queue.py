"""RequestQueue — one request in flight, FIFO admission, generation-checked replies.

The i3 protocol carries no request id: replies arrive in the order requests
were written. Every written frame gets a send generation and every reply a
receive generation; a reply is delivered only to the request whose generation
it matches. A reply owed to a request that timed out (or whose caller gave up)
is discarded when it finally arrives instead of landing on the next caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import ConnectionClosed, ReplyTimeout
from .protocol import Reply, encode_message

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


@dataclass
class PendingRequest:
    code: int
    frame: bytes = field(repr=False)
    future: asyncio.Future = field(repr=False)
    timeout: float | None = None
    generation: int = -1
    deadline: float | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def disarm(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class RequestQueue:
    """Serializes requests over one connection and matches their replies."""

    def __init__(self, send: Callable[[bytes], None], timeout: float | None = DEFAULT_TIMEOUT):
        self._send = send
        self._timeout = timeout
        self._waiting: deque[PendingRequest] = deque()
        self._in_flight: PendingRequest | None = None
        self._sent = 0       # next send generation
        self._received = 0   # next receive generation
        self._closed: BaseException | None = None

    @property
    def in_flight(self) -> PendingRequest | None:
        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed is not None

    def __len__(self) -> int:
        """Requests waiting behind the one in flight."""
        return len(self._waiting)

    def submit(self, code: int, payload="", timeout: float | None = None) -> asyncio.Future:
        """Queue a request; return the future its reply body resolves.

        Encoding happens here, so an EncodingError reaches the caller before
        anything is queued or written.
        """
        if self._closed is not None:
            raise ConnectionClosed("connection is closed") from self._closed
        frame = encode_message(code, payload)
        fut = asyncio.get_running_loop().create_future()
        pending = PendingRequest(
            code=code,
            frame=frame,
            future=fut,
            timeout=self._timeout if timeout is None else timeout,
        )
        fut.add_done_callback(lambda _f: self._on_done(pending))
        self._waiting.append(pending)
        if self._in_flight is None:
            self._advance()
        return fut

    def resolve(self, reply: Reply) -> bool:
        """Hand ``reply`` to the request it belongs to. False if it was stale."""
        pending = self._take(reply.code)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_result(reply.body)
        self._advance()
        return True

    def reject(self, code: int, exc: BaseException) -> bool:
        """A reply arrived but could not be decoded; fail its request with ``exc``."""
        pending = self._take(code)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(exc)
        self._advance()
        return True

    def close(self, exc: BaseException | None = None):
        """Fail the in-flight and every queued request; refuse new ones."""
        if self._closed is not None:
            return
        self._closed = exc or ConnectionClosed("connection closed")
        pending, self._in_flight = self._in_flight, None
        waiting = list(self._waiting)
        self._waiting.clear()
        if pending is not None:
            waiting.insert(0, pending)
        for p in waiting:
            p.disarm()
            if not p.future.done():
                p.future.set_exception(self._closed)

    # ── Internals ─────────────────────────────────────────────────────

    def _take(self, code: int) -> PendingRequest | None:
        """Count one reply; detach and return the request it answers, if any."""
        generation = self._received
        self._received += 1
        pending = self._in_flight

        if pending is None or generation < pending.generation:
            log.debug("Discarding stale reply (type %d, generation %d)", code, generation)
            return None
        if generation > pending.generation:
            log.warning("Unexpected reply (type %d, generation %d, expected %d)",
                        code, generation, pending.generation)
            return None
        if code != pending.code:
            log.warning("Reply type %d for request type %d", code, pending.code)

        self._in_flight = None
        pending.disarm()
        return pending

    def _advance(self):
        """Write the next queued request if nothing is in flight."""
        while self._in_flight is None and self._waiting and self._closed is None:
            pending = self._waiting.popleft()
            if pending.future.done():
                continue  # cancelled while waiting
            pending.generation = self._sent
            self._sent += 1
            self._in_flight = pending
            try:
                self._send(pending.frame)
            except Exception as e:
                self._sent -= 1
                self._in_flight = None
                pending.future.set_exception(e)
                continue
            log.debug("Sent request type %d (generation %d)", pending.code, pending.generation)
            if pending.timeout is not None:
                loop = asyncio.get_running_loop()
                pending.deadline = loop.time() + pending.timeout
                pending.timer = loop.call_at(pending.deadline, self._expire, pending)

    def _expire(self, pending: PendingRequest):
        pending.timer = None
        if pending is not self._in_flight:
            return
        log.warning("No reply to request type %d within %.2fs", pending.code, pending.timeout)
        if not pending.future.done():
            pending.future.set_exception(
                ReplyTimeout(f"no reply to type {pending.code} within {pending.timeout:.2f}s")
            )
        # the done callback abandons the slot

    def _on_done(self, pending: PendingRequest):
        # timed out or cancelled by the caller: its reply, if any, is now stale
        if pending is self._in_flight:
            self._in_flight = None
            pending.disarm()
            self._advance()
