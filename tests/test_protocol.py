"""Tests for i3wm.protocol — frame encode/decode."""

import struct

import pytest

from i3wm.errors import EncodingError, FramingError, PayloadError
from i3wm.protocol import (
    EVENT_FLAG,
    HEADER_SIZE,
    MAGIC,
    Event,
    MessageType,
    Reply,
    command_payload,
    decode_message,
    encode_command,
    encode_message,
    encode_payload,
    parse_header,
)


class TestEncode:
    def test_exit_command_bytes(self):
        """Type 0 with payload "exit" is bit-exact with the reference frame."""
        frame = encode_message(0, "exit")
        assert frame.hex() == "69332d697063" "04000000" "00000000" "65786974"

    def test_integers_are_little_endian(self):
        """Length and type are written little-endian regardless of host."""
        frame = encode_message(0x01020304, "ab")
        assert frame[:6] == MAGIC
        assert frame[6:10] == b"\x02\x00\x00\x00"
        assert frame[10:14] == b"\x04\x03\x02\x01"
        assert frame[14:] == b"ab"

    def test_object_payload_is_json(self):
        frame = encode_message(MessageType.SUBSCRIBE, ["window", "workspace"])
        assert frame[HEADER_SIZE:] == b'["window","workspace"]'

    def test_length_counts_utf8_bytes(self):
        """Length is the encoded byte count, not the character count."""
        frame = encode_message(0, "rename workspace to ü")
        length = struct.unpack_from("<I", frame, 6)[0]
        assert length == len("rename workspace to ü".encode("utf-8"))
        assert len(frame) == HEADER_SIZE + length

    def test_scalar_payloads(self):
        """Non-string scalars go out in their string form."""
        assert encode_payload(42) == "42"
        assert encode_payload(True) == "true"
        assert encode_payload(None) == "null"
        assert encode_payload("plain text") == "plain text"

    def test_command_joins_args(self):
        """Args are stringified and joined with single spaces."""
        assert command_payload("workspace", 2) == "workspace 2"
        assert command_payload("mark", "m") == "mark m"
        assert command_payload("nop", {"a": 1}) == 'nop {"a":1}'
        assert encode_command("exit") == encode_message(0, "exit")

    def test_unserializable_payload(self):
        with pytest.raises(EncodingError):
            encode_message(1, object())

    def test_nan_payload(self):
        """NaN has no JSON representation."""
        with pytest.raises(EncodingError):
            encode_message(1, {"x": float("nan")})

    def test_unencodable_text(self):
        """Lone surrogates cannot be written as UTF-8."""
        with pytest.raises(EncodingError):
            encode_message(0, "mark \ud800")

    @pytest.mark.parametrize("code", [-1, 2**32, "0"])
    def test_bad_type_code(self, code):
        with pytest.raises(EncodingError):
            encode_message(code, "")


class TestDecode:
    @pytest.mark.parametrize("code, payload", [
        (1, [{"num": 1, "name": "1", "focused": True}]),
        (4, {"id": 94, "nodes": [], "name": None}),
        (7, {"human_readable": "4.23", "major": 4}),
        (11, 3),
    ])
    def test_round_trip(self, code, payload):
        msg = decode_message(encode_message(code, payload))
        assert msg == Reply(code, payload)

    def test_event_flag(self):
        """High bit set means Event; the code is masked before use."""
        msg = decode_message(encode_message(3 | EVENT_FLAG, {"change": "focus"}))
        assert isinstance(msg, Event)
        assert msg.code == 3
        assert msg.name == "window"
        assert msg.body == {"change": "focus"}

    def test_unknown_event_code(self):
        msg = decode_message(encode_message(42 | EVENT_FLAG, {}))
        assert isinstance(msg, Event)
        assert msg.name == "unknown"

    def test_empty_payload(self):
        assert decode_message(encode_message(2, "")) == Reply(2, None)

    def test_bad_magic(self):
        frame = b"i3-ipx" + encode_message(0, "{}")[6:]
        with pytest.raises(FramingError):
            decode_message(frame)

    def test_short_header(self):
        with pytest.raises(FramingError):
            decode_message(MAGIC + b"\x00\x00")

    def test_truncated_payload(self):
        frame = encode_message(0, '{"success": true}')
        with pytest.raises(FramingError):
            decode_message(frame[:-3])

    def test_invalid_json(self):
        """PayloadError keeps the header's code and event flag."""
        with pytest.raises(PayloadError) as exc_info:
            decode_message(encode_message(0, "{not json"))
        assert exc_info.value.code == 0
        assert exc_info.value.event is False

        with pytest.raises(PayloadError) as exc_info:
            decode_message(encode_message(5 | EVENT_FLAG, "[1,"))
        assert exc_info.value.code == 5
        assert exc_info.value.event is True

    def test_parse_header(self):
        assert parse_header(encode_message(9 | EVENT_FLAG, "{}")) == (2, 9 | EVENT_FLAG)
