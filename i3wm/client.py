"""Connection — async i3 IPC client over a Unix domain socket."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable

from .discovery import get_socket_path
from .errors import ApplicationFailure, ConnectionClosed, FramingError, PayloadError
from .events import EventHub, check_name
from .framing import FrameAssembler
from .protocol import Event, MessageType, command_payload, decode_message
from .request_queue import DEFAULT_TIMEOUT, RequestQueue

log = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096


@dataclasses.dataclass
class ConnectOptions:
    socket_path: str | None = None   # None: discover
    timeout: float | None = DEFAULT_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE


async def connect(options: ConnectOptions | None = None, **overrides) -> "Connection":
    """Open a connection to the window manager.

    Keyword overrides are applied on top of ``options``. OSError from the
    socket connect propagates unchanged.
    """
    options = dataclasses.replace(options or ConnectOptions(), **overrides)
    path = options.socket_path or await get_socket_path()
    reader, writer = await asyncio.open_unix_connection(path)
    log.info("Connected to window manager at %s", path)
    return Connection(reader, writer, path, options)


def check_success(body):
    """Raise ApplicationFailure if ``body`` (or any result in it) says success: false."""
    results = body if isinstance(body, list) else [body]
    for result in results:
        if isinstance(result, dict) and result.get("success") is False:
            raise ApplicationFailure(body, result.get("error"))
    return body


class Connection:
    """One IPC connection: request/reply correlation plus event fan-out.

    All state is touched only from the event loop that created it; decode,
    routing and dispatch run in arrival order from a single reader task.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 socket_path: str, options: ConnectOptions | None = None):
        self._reader = reader
        self._writer = writer
        self._socket_path = socket_path
        self._options = options or ConnectOptions(socket_path=socket_path)
        self._assembler = FrameAssembler()
        self._requests = RequestQueue(self._write, timeout=self._options.timeout)
        self._events = EventHub()
        self._closed = asyncio.Event()
        self._reader_task = asyncio.create_task(self._read_loop())

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def events(self) -> EventHub:
        return self._events

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    # ── Requests ──────────────────────────────────────────────────────

    async def query(self, code: int, payload="", timeout: float | None = None):
        """Send a message of type ``code`` and return the decoded reply body."""
        fut = self._requests.submit(code, payload, timeout=timeout)
        try:
            await self._writer.drain()
        except ConnectionError as e:
            self._teardown(ConnectionClosed(f"write failed: {e}"))
        return await fut

    async def send_command(self, command: str, *args, timeout: float | None = None):
        """Run an i3 command. Extra args are stringified and space-joined."""
        body = await self.query(MessageType.RUN_COMMAND, command_payload(command, *args), timeout=timeout)
        return check_success(body)

    async def subscribe(self, *names: str):
        """Ask the server to start pushing the named events."""
        for name in names:
            check_name(name)
        body = await self.query(MessageType.SUBSCRIBE, list(names))
        check_success(body)
        self._events.mark_subscribed(names)
        log.debug("Subscribed to %s", ", ".join(names))

    # ── Typed queries ─────────────────────────────────────────────────

    async def get_workspaces(self):
        return await self.query(MessageType.GET_WORKSPACES)

    async def get_outputs(self):
        return await self.query(MessageType.GET_OUTPUTS)

    async def get_tree(self):
        return await self.query(MessageType.GET_TREE)

    async def get_marks(self):
        return await self.query(MessageType.GET_MARKS)

    async def get_bar_config(self, bar_id: str | None = None):
        """Bar ids when ``bar_id`` is None, otherwise that bar's config."""
        return await self.query(MessageType.GET_BAR_CONFIG, bar_id or "")

    async def get_version(self):
        return await self.query(MessageType.GET_VERSION)

    async def get_binding_modes(self):
        return await self.query(MessageType.GET_BINDING_MODES)

    async def get_config(self):
        return await self.query(MessageType.GET_CONFIG)

    async def send_tick(self, payload: str = ""):
        return check_success(await self.query(MessageType.SEND_TICK, payload))

    async def sync(self, random: int, window: int):
        return check_success(await self.query(MessageType.SYNC, {"random": random, "window": window}))

    # ── Events ────────────────────────────────────────────────────────

    def on(self, name: str, listener: Callable):
        """Register ``listener(event)``. Does not subscribe; see subscribe()."""
        self._events.on(name, listener)

    def off(self, name: str, listener: Callable) -> bool:
        return self._events.off(name, listener)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def close(self):
        """Fail outstanding requests, silence events, close the socket."""
        self._teardown(ConnectionClosed("connection closed by client"))
        if self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    async def wait_closed(self):
        await self._closed.wait()

    def _teardown(self, exc: ConnectionClosed):
        if self._closed.is_set():
            return
        self._closed.set()
        self._requests.close(exc)
        self._events.close()
        self._assembler.reset()
        self._writer.close()
        log.info("Disconnected from %s: %s", self._socket_path, exc)

    # ── Transport ─────────────────────────────────────────────────────

    def _write(self, frame: bytes):
        self._writer.write(frame)

    async def _read_loop(self):
        reason = ConnectionClosed("connection closed by server")
        try:
            while not self.closed:
                data = await self._reader.read(self._options.read_size)
                if not data:
                    break
                for frame in self._assembler.feed(data):
                    if self.closed:
                        break
                    self._dispatch(frame)
        except FramingError as e:
            log.error("Corrupt frame from %s: %s", self._socket_path, e)
            reason = ConnectionClosed(f"corrupt frame: {e}")
            reason.__cause__ = e
        except OSError as e:
            reason = ConnectionClosed(f"read failed: {e}")
            reason.__cause__ = e
        finally:
            self._teardown(reason)

    def _dispatch(self, frame: bytes):
        try:
            msg = decode_message(frame)
        except PayloadError as e:
            log.warning("Dropping frame: %s", e)
            if not e.event:
                self._requests.reject(e.code, e)
            return

        if isinstance(msg, Event):
            self._events.emit(msg)
        else:
            self._requests.resolve(msg)
