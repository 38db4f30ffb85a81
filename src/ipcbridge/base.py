"""Core abstractions for ipcbridge.

Defines the error taxonomy shared by the connector, the acceptor, the message
codec and the proxy bridge, and the logging capability those components
consume.
"""

import enum
import logging
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Log(Protocol):
    """Logging capability consumed by the transport components.

    Any `logging.Logger` or `logging.LoggerAdapter` satisfies it. A logger
    spelling `warning` as `warn` is also accepted by `emit()`.
    """

    def debug(self, msg: str) -> None: ...

    def info(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...


def emit(log: Log | None, level: str, msg: str, fallback: logging.Logger | None = None) -> None:
    """Send `msg` to `log` (or `fallback`) at `level`.

    A logger that only has `warn` receives warnings through it. A failing
    logger never affects the operation that is logging.
    """
    target = log if log is not None else fallback
    if target is None:
        return
    method = getattr(target, level, None)
    if method is None and level == "warning":
        method = getattr(target, "warn", None)
    if method is None:
        return
    try:
        method(msg)
    except Exception:
        pass


class ConnectReason(enum.Enum):
    """Why an outbound connection could not be established."""

    REFUSED = "refused"
    TIMEOUT = "timeout"
    REJECTED_CLOSED = "rejectedClosed"


class AcceptReason(enum.Enum):
    """Why an inbound connection could not be accepted."""

    LISTEN_ERROR = "listenError"
    TIMEOUT = "timeout"


class ProtocolReason(enum.Enum):
    """Why a received line could not be turned into a message."""

    MALFORMED_MESSAGE = "malformedMessage"


class IPCError(Exception):
    """Base exception for ipcbridge errors."""
    pass


class ConnectFailure(IPCError):
    """Raised when `connect()` gives up on reaching `host:port`."""

    def __init__(
        self,
        reason: ConnectReason,
        host: str | None,
        port: int,
        cause: BaseException | None = None,
    ):
        self.reason = reason
        self.host = host
        self.port = port
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Failed to connect to {host or 'localhost'}:{port} ({reason.value}){detail}"
        )


class AcceptFailure(IPCError):
    """Raised when `accept()` does not yield a connection."""

    def __init__(
        self,
        reason: AcceptReason,
        host: str | None,
        port: int,
        cause: BaseException | None = None,
    ):
        self.reason = reason
        self.host = host
        self.port = port
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Failed to accept a connection on {host or '*'}:{port} ({reason.value}){detail}"
        )


class ProtocolError(IPCError):
    """Raised when a received line is not a valid JSON message."""

    def __init__(
        self,
        reason: ProtocolReason,
        line: bytes,
        cause: BaseException | None = None,
    ):
        self.reason = reason
        self.line = line
        self.cause = cause
        super().__init__(f"Malformed message {line[:80]!r}: {cause}")


Message = Any
"""An arbitrary JSON-serializable value."""
