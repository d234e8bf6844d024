"""
i3wm — asyncio client for the i3 window manager's IPC protocol.

Usage:
    from i3wm import connect

    async with await connect() as i3:
        await i3.send_command("workspace", 2)
        i3.on("window", print)
        await i3.subscribe("window")
"""

from .client import Connection, ConnectOptions, connect
from .errors import (
    ApplicationFailure,
    ConnectionClosed,
    DiscoveryError,
    EncodingError,
    FramingError,
    IpcError,
    PayloadError,
    ReplyTimeout,
)
from .protocol import Event, EventType, MessageType, Reply, decode_message, encode_message

__version__ = "1.0.0"
