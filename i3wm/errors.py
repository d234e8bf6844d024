"""Exceptions raised by the i3 IPC client."""


class IpcError(Exception):
    """Base class for all i3wm errors."""


class FramingError(IpcError):
    """Bad magic or malformed header. The connection cannot resynchronize."""


class PayloadError(IpcError):
    """A well-framed message whose payload is not valid JSON.

    ``code`` and ``event`` come from the frame header, which decoded fine.
    """

    def __init__(self, message: str, code: int | None = None, event: bool = False):
        self.code = code
        self.event = event
        super().__init__(message)


class EncodingError(IpcError):
    """A caller payload could not be serialized. Nothing was written."""


class ReplyTimeout(IpcError, TimeoutError):
    """No reply arrived within the configured window."""


class ConnectionClosed(IpcError, ConnectionError):
    """The transport ended or the connection was closed."""


class DiscoveryError(IpcError):
    """The window manager's socket path could not be determined."""


class ApplicationFailure(IpcError):
    """A reply decoded fine but reported ``success: false``."""

    def __init__(self, body, error: str | None = None):
        self.body = body
        self.error = error or "command failed"
        super().__init__(self.error)
