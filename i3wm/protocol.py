"""i3 IPC wire codec — length-prefixed JSON frames over a Unix stream socket.

Frame layout (all integers little-endian, independent of the host)::

    offset 0   6 bytes   magic "i3-ipc"
    offset 6   u32       payload length
    offset 10  u32       type word (bit 31 = event flag, bits 0-30 = code)
    offset 14  ...       payload, UTF-8 JSON (or plain text for commands)
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from enum import IntEnum

from .errors import EncodingError, FramingError, PayloadError

MAGIC = b"i3-ipc"
HEADER = struct.Struct("<6sII")
HEADER_SIZE = HEADER.size  # 14
EVENT_FLAG = 0x80000000
CODE_MASK = 0x7FFFFFFF
U32_MAX = 0xFFFFFFFF


class MessageType(IntEnum):
    """Request types. Replies carry the same code as the request."""

    RUN_COMMAND = 0
    GET_WORKSPACES = 1
    SUBSCRIBE = 2
    GET_OUTPUTS = 3
    GET_TREE = 4
    GET_MARKS = 5
    GET_BAR_CONFIG = 6
    GET_VERSION = 7
    GET_BINDING_MODES = 8
    GET_CONFIG = 9
    SEND_TICK = 10
    SYNC = 11


class EventType(IntEnum):
    WORKSPACE = 0
    OUTPUT = 1
    MODE = 2
    WINDOW = 3
    BARCONFIG_UPDATE = 4
    BINDING = 5
    SHUTDOWN = 6
    TICK = 7


EVENT_NAMES: dict[int, str] = {t.value: t.name.lower() for t in EventType}
EVENT_CODES: dict[str, int] = {name: code for code, name in EVENT_NAMES.items()}
UNKNOWN_EVENT = "unknown"


# ── Messages ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Reply:
    """Server response to the request sent before it."""

    code: int
    body: object = None


@dataclass(frozen=True)
class Event:
    """Unsolicited notification pushed by the server."""

    code: int
    body: object = None

    @property
    def name(self) -> str:
        return EVENT_NAMES.get(self.code, UNKNOWN_EVENT)


Message = Reply | Event


# ── Encode ────────────────────────────────────────────────────────────

def encode_payload(payload) -> str:
    """Strings go out verbatim, everything else as JSON text."""
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"payload is not JSON-serializable: {e}") from e


def encode_message(code: int, payload="") -> bytes:
    """Build one frame for ``code`` carrying ``payload``."""
    if not isinstance(code, int) or not 0 <= code <= U32_MAX:
        raise EncodingError(f"type code out of range: {code!r}")
    try:
        data = encode_payload(payload).encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"payload is not representable as UTF-8: {e}") from e
    return HEADER.pack(MAGIC, len(data), code) + data


def command_payload(command: str, *args) -> str:
    """Command text and stringified args joined by single spaces."""
    return " ".join([command, *(encode_payload(a) for a in args)])


def encode_command(command: str, *args) -> bytes:
    """RUN_COMMAND frame for ``command_payload(command, *args)``."""
    return encode_message(MessageType.RUN_COMMAND, command_payload(command, *args))


# ── Decode ────────────────────────────────────────────────────────────

def parse_header(data: bytes) -> tuple[int, int]:
    """Validate the header at the start of ``data``; return (length, type_word)."""
    if len(data) < HEADER_SIZE:
        raise FramingError(f"short header: {len(data)} of {HEADER_SIZE} bytes")
    magic, length, type_word = HEADER.unpack_from(data)
    if magic != MAGIC:
        raise FramingError(f"bad magic {magic!r}, expected {MAGIC!r}")
    return length, type_word


def decode_message(frame: bytes) -> Message:
    """Decode one complete frame into a Reply or an Event."""
    length, type_word = parse_header(frame)
    end = HEADER_SIZE + length
    if len(frame) < end:
        raise FramingError(f"truncated frame: payload {len(frame) - HEADER_SIZE} of {length} bytes")

    code = type_word & CODE_MASK
    is_event = bool(type_word & EVENT_FLAG)
    raw = bytes(frame[HEADER_SIZE:end])
    body = None
    if raw:
        try:
            body = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PayloadError(f"invalid payload for type {code}: {e}", code=code, event=is_event) from e

    if is_event:
        return Event(code, body)
    return Reply(code, body)
