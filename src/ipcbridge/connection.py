"""Connection: a bidirectional byte stream over TCP.

Wraps an asyncio `StreamReader`/`StreamWriter` pair produced by `connect()` or
`accept()`. The component that created a connection owns it until it is
closed.
"""

import asyncio
import contextlib
import logging

from ipcbridge.base import Log, emit

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class Connection:
    """A TCP connection carrying newline-delimited JSON messages.

    Usable as an async context manager, which closes the connection on exit.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        log: Log | None = None,
        disconnect_message: str | None = None,
    ):
        """Create a connection from an asyncio stream pair.

        Args:
            reader: Stream the peer's bytes arrive on
            writer: Stream our bytes leave on
            log: Logger for connection events
            disconnect_message: Logged once when the peer ends the stream
        """
        self._reader = reader
        self._writer = writer
        self._log = log
        self._disconnect_message = disconnect_message
        self._eof_seen = False

    @property
    def peername(self):
        """Address of the remote end."""
        return self._writer.get_extra_info("peername")

    @property
    def sockname(self):
        """Address of the local end."""
        return self._writer.get_extra_info("sockname")

    @property
    def is_closed(self) -> bool:
        """Whether the connection was closed locally or ended by the peer.

        A peer that ended the stream after sending data counts as closed only
        once that data has been read. Such a connection is still usable for
        reading what the peer sent.
        """
        return self._writer.is_closing() or self._reader.at_eof()

    async def write(self, data: bytes) -> None:
        """Write `data` and wait until it is handed to the transport.

        Raises:
            ConnectionResetError: If the connection is already closed.
        """
        if self._writer.is_closing():
            raise ConnectionResetError("Connection is closed")
        self._writer.write(data)
        await self._writer.drain()

    async def read(self, n: int = READ_CHUNK_SIZE) -> bytes:
        """Read up to `n` bytes. Returns b"" once the peer has ended the stream."""
        try:
            data = await self._reader.read(n)
        except ConnectionError as e:
            emit(self._log, "debug", f"Connection lost while reading: {e}", logger)
            data = b""
        if not data:
            self._on_eof()
        return data

    def _on_eof(self) -> None:
        if self._eof_seen:
            return
        self._eof_seen = True
        if self._disconnect_message:
            emit(self._log, "info", self._disconnect_message, logger)

    def end(self) -> None:
        """Half-close: signal end of our stream while still reading theirs."""
        if self._writer.is_closing():
            return
        if self._writer.can_write_eof():
            with contextlib.suppress(OSError):
                self._writer.write_eof()
        else:
            self._writer.close()

    def close(self) -> None:
        """Close both directions. Buffered data is still flushed. Idempotent."""
        self._writer.close()

    async def wait_closed(self) -> None:
        """Wait until the underlying transport is closed."""
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
        await self.wait_closed()

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<Connection {self.sockname} -> {self.peername} ({state})>"
