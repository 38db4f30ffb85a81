"""Acceptor: a listener that accepts exactly one inbound connection.

As soon as the first connection arrives the listening socket is closed, so a
later connection attempt to the same port is refused. The listening socket is
also closed when the wait times out.

## Usage

```python
from ipcbridge import AcceptOptions, accept

conn = await accept(8123, AcceptOptions(timeout=10.0))
```

Use `Acceptor` directly to learn the bound port before the peer connects:

```python
acceptor = Acceptor(0)
await acceptor.listen()
start_worker(port=acceptor.port)
conn = await acceptor.accept()
```
"""

import asyncio
import logging

from ipcbridge.base import AcceptFailure, AcceptReason, Log, emit
from ipcbridge.config import AcceptOptions
from ipcbridge.connection import Connection

logger = logging.getLogger(__name__)

BIND_ATTEMPTS = 5


class Acceptor:
    """One-shot TCP listener.

    Each instance accepts at most one connection in its lifetime.
    """

    def __init__(
        self,
        port: int,
        options: AcceptOptions | None = None,
        *,
        log: Log | None = None,
    ):
        """Create an acceptor. Nothing is bound until `listen()`.

        Args:
            port: Port to listen on (0 picks a free port)
            options: Listener options (defaults to `AcceptOptions()`)
            log: Logger for listener events (defaults to this module's logger)
        """
        self._port = port
        self._options = options or AcceptOptions()
        self._log = log
        self._server: asyncio.Server | None = None
        self._accepted: asyncio.Future | None = None
        self._accept_called = False

    @property
    def port(self) -> int:
        """The port being listened on (the bound port once listening)."""
        return self._port

    @property
    def is_listening(self) -> bool:
        """Whether the listening socket is open."""
        return self._server is not None and self._server.is_serving()

    async def listen(self) -> None:
        """Bind the listening socket.

        Raises:
            AcceptFailure: With reason `LISTEN_ERROR` if the socket cannot be bound.
            RuntimeError: If called more than once.
        """
        if self._accepted is not None:
            raise RuntimeError("Acceptor has already been started")
        self._accepted = asyncio.get_running_loop().create_future()

        emit(self._log, "info", "IPC server created", logger)
        try:
            self._server = await self._start_server()
        except OSError as e:
            emit(self._log, "error", f"IPC server failed listening: {e}", logger)
            self._accepted.cancel()
            raise AcceptFailure(AcceptReason.LISTEN_ERROR, self._options.host, self._port, e) from e

        self._port = self._server.sockets[0].getsockname()[1]
        emit(self._log, "info", f"IPC server is listening on port {self._port}", logger)

    async def _start_server(self) -> asyncio.Server:
        host = self._options.host
        server = await asyncio.start_server(self._on_connection, host, self._port)
        if self._port != 0:
            return server
        for _ in range(BIND_ATTEMPTS):
            port = server.sockets[0].getsockname()[1]
            if all(sock.getsockname()[1] == port for sock in server.sockets):
                return server
            # Port 0 gave each address family its own port. Rebind all of them on the first one.
            server.close()
            try:
                return await asyncio.start_server(self._on_connection, host, port)
            except OSError:
                server = await asyncio.start_server(self._on_connection, host, 0)
        server.close()
        raise OSError(f"Could not bind every address of {host or '*'} to a single port")

    def _on_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._accepted is None or self._accepted.done():
            writer.close()
            return

        emit(self._log, "info", "IPC server received client connection", logger)
        self._accepted.set_result(
            Connection(
                reader,
                writer,
                self._log,
                disconnect_message="IPC server received disconnect from client",
            )
        )
        # Only one connection is accepted. This does not close the connection
        # that was just established.
        self._stop_listening()

    async def accept(self) -> Connection:
        """Wait for the first connection, listening first if needed.

        Raises:
            AcceptFailure: With reason `TIMEOUT` if no connection arrived within
                `options.timeout` seconds, or `LISTEN_ERROR` if binding failed.
            RuntimeError: If called more than once.
        """
        if self._accept_called:
            raise RuntimeError("Acceptor accepts only one connection")
        self._accept_called = True

        if self._accepted is None:
            await self.listen()

        timeout = self._options.timeout
        try:
            if timeout > 0:
                return await asyncio.wait_for(self._accepted, timeout)
            return await self._accepted
        except asyncio.TimeoutError:
            emit(
                self._log,
                "error",
                "IPC server timed out before receiving a client connection",
                logger,
            )
            raise AcceptFailure(AcceptReason.TIMEOUT, self._options.host, self._port) from None
        finally:
            self._stop_listening()

    def _stop_listening(self) -> None:
        if self._server is not None:
            self._server.close()

    def close(self) -> None:
        """Stop listening. A pending `accept()` is cancelled. Idempotent.

        A connection that was already accepted is not closed.
        """
        self._stop_listening()
        if self._accepted is not None and not self._accepted.done():
            self._accepted.cancel()

    async def __aenter__(self) -> "Acceptor":
        await self.listen()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


async def accept(
    port: int,
    options: AcceptOptions | None = None,
    *,
    log: Log | None = None,
) -> Connection:
    """Listen on `port`, return the first connection, and stop listening.

    Args:
        port: Port to listen on
        options: Listener options (defaults to `AcceptOptions()`)
        log: Logger for listener events (defaults to this module's logger)

    Raises:
        AcceptFailure: With reason `LISTEN_ERROR` or `TIMEOUT`.
    """
    return await Acceptor(port, options, log=log).accept()
