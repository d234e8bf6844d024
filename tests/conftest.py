"""Shared fixtures for the i3wm test suite."""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest_asyncio

from i3wm.client import connect
from i3wm.framing import FrameAssembler
from i3wm.protocol import EVENT_FLAG, HEADER_SIZE, MessageType, encode_message, parse_header


class FakeI3:
    """Scripted stand-in for the window manager's IPC server.

    Replies to each request from ``replies`` (a body, or a callable taking the
    raw payload) unless ``hold`` is set, in which case the test replies itself.
    """

    def __init__(self, path: Path):
        self.path = path
        self.hold = False
        self.requests: list[tuple[int, bytes]] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.connected = asyncio.Event()
        self.replies = {
            MessageType.RUN_COMMAND: [{"success": True}],
            MessageType.SUBSCRIBE: {"success": True},
            MessageType.GET_VERSION: {"major": 4, "minor": 23, "patch": 0, "human_readable": "4.23"},
            MessageType.GET_WORKSPACES: [{"num": 1, "name": "1", "focused": True}],
            MessageType.SEND_TICK: {"success": True},
        }
        self._server: asyncio.AbstractServer | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self.writer: asyncio.StreamWriter | None = None

    async def start(self):
        self._server = await asyncio.start_unix_server(self._client_handler, path=str(self.path))

    async def stop(self):
        for writer in list(self._writers):
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def _client_handler(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.writer = writer
        self._writers.add(writer)
        self.connected.set()
        assembler = FrameAssembler()
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                for frame in assembler.feed(data):
                    _, code = parse_header(frame)
                    payload = frame[HEADER_SIZE:]
                    self.requests.append((code, payload))
                    if not self.hold:
                        await self.reply(code, self.reply_for(code, payload))
                    self.inbox.put_nowait((code, payload))
        except (ConnectionResetError, BrokenPipeError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    def reply_for(self, code: int, payload: bytes):
        body = self.replies.get(code, {})
        return body(payload) if callable(body) else body

    async def send_raw(self, data: bytes):
        self.writer.write(data)
        await self.writer.drain()

    async def reply(self, code: int, body):
        await self.send_raw(encode_message(code, body))

    async def push_event(self, code: int, body):
        await self.send_raw(encode_message(code | EVENT_FLAG, body))

    async def hang_up(self):
        self.writer.close()
        await self.writer.wait_closed()


async def eventually(predicate, timeout: float = 1.0):
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest_asyncio.fixture
async def fake_i3():
    """A running FakeI3 on a short socket path (AF_UNIX paths are length-limited)."""
    tmp = tempfile.mkdtemp(prefix="i3wm-")
    server = FakeI3(Path(tmp) / "ipc.sock")
    await server.start()
    yield server
    await server.stop()
    shutil.rmtree(tmp, ignore_errors=True)


@pytest_asyncio.fixture
async def conn(fake_i3):
    """A Connection to ``fake_i3``."""
    c = await connect(socket_path=str(fake_i3.path), timeout=1.0)
    await fake_i3.connected.wait()
    yield c
    await c.close()
