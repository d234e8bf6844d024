"""FrameAssembler — rebuilds discrete frames from a boundary-free byte stream.

A single read may carry no frame, part of one, or several. Bytes are kept in a
residual buffer until a complete header plus its declared payload is present.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .protocol import HEADER_SIZE, parse_header

log = logging.getLogger(__name__)


class FrameAssembler:
    """Stateful per-connection frame splitter."""

    def __init__(self):
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Append ``chunk`` and lazily yield every frame now complete."""
        if chunk:
            self._buffer += chunk
        return self.frames()

    def frames(self) -> Iterator[bytes]:
        while len(self._buffer) >= HEADER_SIZE:
            # raises FramingError on bad magic; the length can't be trusted then
            length, _ = parse_header(self._buffer)
            end = HEADER_SIZE + length
            if len(self._buffer) < end:
                log.debug("Partial frame: %d of %d bytes", len(self._buffer), end)
                return
            frame = bytes(self._buffer[:end])
            del self._buffer[:end]
            yield frame

    def reset(self):
        self._buffer.clear()
