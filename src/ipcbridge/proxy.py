"""ProxyBridge: splice one local connection to one remote connection.

The bridge connects to a remote listener, then listens locally for a single
connection. Every message arriving on the local connection is passed through a
transform and forwarded to the remote connection. This lets a worker and a
controller that see different filesystem namespaces (container, SSH host) talk
to each other while the paths in their messages are rewritten.

Forwarding is one-directional (local to remote) and message-at-a-time: each
message is written before the next one is decoded. When either side ends, the
other side is closed as well.

## Usage

```python
from ipcbridge import create_worker_proxy, local_path_converter, PathMapping
from ipcbridge.messages import convert_test_run_message

convert = local_path_converter([PathMapping("/home/me/project", "/workspace")])

bridge = await create_worker_proxy(
    8124, "controller-host", 8123,
    lambda msg: convert_test_run_message(msg, convert),
)
...
bridge.dispose()
```
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from ipcbridge.accept import Acceptor
from ipcbridge.base import Log, Message, emit
from ipcbridge.codec import read_messages, write_message
from ipcbridge.config import AcceptOptions, ConnectOptions
from ipcbridge.connect import connect
from ipcbridge.connection import Connection

logger = logging.getLogger(__name__)

Transform = Callable[[Message], Message | Awaitable[Message]]
"""Rewrites one message in flight. May be a plain function or a coroutine function."""


class ProxyBridge:
    """Handle to a running bridge, returned by `create_worker_proxy()`.

    Usable as an async context manager, which disposes the bridge on exit.
    """

    def __init__(
        self,
        remote: Connection,
        acceptor: Acceptor,
        transform: Transform,
        log: Log | None = None,
    ):
        """Wrap an established remote leg and a listening local acceptor.

        Call `start()` to begin accepting and forwarding.
        """
        self._remote = remote
        self._acceptor = acceptor
        self._transform = transform
        self._log = log
        self._local: Connection | None = None
        self._task: asyncio.Task | None = None
        self._disposed = False

    @property
    def local_port(self) -> int:
        """The port the local side connects to."""
        return self._acceptor.port

    @property
    def local(self) -> Connection | None:
        """The accepted local connection, if any."""
        return self._local

    @property
    def remote(self) -> Connection:
        """The connection to the remote listener."""
        return self._remote

    @property
    def is_closed(self) -> bool:
        """Whether forwarding has finished and both legs are closed."""
        return self._task is not None and self._task.done()

    def start(self) -> None:
        """Start accepting the local connection in a background task."""
        if self._task is not None:
            raise RuntimeError("Bridge has already been started")
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._on_done)

    async def _run(self) -> None:
        try:
            try:
                local = await self._acceptor.accept()
            except asyncio.CancelledError:
                # dispose() cancels an accept that is still pending
                if self._disposed:
                    return
                raise
            self._local = local
            if self._disposed:
                return

            emit(self._log, "info", "Worker proxy accepted local connection", logger)
            drain_task = asyncio.create_task(self._drain_remote(local))
            try:
                await self._forward(local)
            finally:
                drain_task.cancel()
                try:
                    await drain_task
                except asyncio.CancelledError:
                    pass
        finally:
            self._close_legs()

    async def _forward(self, local: Connection) -> None:
        """Relay local messages to the remote side until the local side ends."""
        async for msg in read_messages(local):
            if self._remote.is_closed:
                break
            result = self._transform(msg)
            if inspect.isawaitable(result):
                result = await result
            try:
                await write_message(self._remote, result)
            except ConnectionError:
                if self._disposed or self._remote.is_closed:
                    break
                raise
        emit(self._log, "info", "Worker proxy local side ended, closing remote connection", logger)

    async def _drain_remote(self, local: Connection) -> None:
        """Discard remote data until the remote side ends, then close the local side."""
        while True:
            data = await self._remote.read()
            if not data:
                break
            emit(self._log, "debug", f"Worker proxy discarding {len(data)} bytes from remote", logger)
        emit(self._log, "info", "Worker proxy remote side ended, closing local connection", logger)
        local.close()

    def _close_legs(self) -> None:
        self._remote.close()
        if self._local is not None:
            self._local.close()
        self._acceptor.close()

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            emit(self._log, "error", f"Worker proxy failed: {exc!r}", logger)

    def dispose(self) -> None:
        """Close both legs. Safe to call at any time, any number of times."""
        if not self._disposed:
            emit(self._log, "info", "Worker proxy disposed", logger)
        self._disposed = True
        self._remote.close()
        if self._local is not None:
            self._local.close()
        else:
            self._acceptor.close()

    async def wait_closed(self) -> None:
        """Wait until forwarding has finished and both legs are closed.

        Raises:
            Exception: Whatever ended forwarding abnormally, such as an
                `AcceptFailure`, a `ProtocolError` or an exception raised by the
                transform.
        """
        try:
            if self._task is not None:
                await self._task
        finally:
            await self._remote.wait_closed()
            if self._local is not None:
                await self._local.wait_closed()

    async def __aenter__(self) -> "ProxyBridge":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()
        if self._task is not None:
            await asyncio.wait([self._task])


async def create_worker_proxy(
    local_port: int,
    remote_host: str,
    remote_port: int,
    transform: Transform,
    *,
    connect_options: ConnectOptions | None = None,
    accept_options: AcceptOptions | None = None,
    log: Log | None = None,
) -> ProxyBridge:
    """Connect to `remote_host:remote_port`, then listen on `local_port`.

    Returns once both legs exist; the local connection is accepted in the
    background.

    Args:
        local_port: Port to listen on for the local side (0 picks a free port)
        remote_host: Host of the remote listener
        remote_port: Port of the remote listener
        transform: Applied to every message before it is forwarded
        connect_options: Options for the remote leg (its `host` is replaced by
            `remote_host`). Defaults to `ConnectOptions()`.
        accept_options: Options for the local listener. Defaults to waiting
            forever for the local connection.
        log: Logger for bridge events (defaults to this module's logger)

    Raises:
        ConnectFailure: If the remote leg cannot be established.
        AcceptFailure: If the local listener cannot be bound. The remote leg is
            closed first.
    """
    connect_options = replace(connect_options or ConnectOptions(), host=remote_host)
    remote = await connect(remote_port, connect_options, log=log)

    acceptor = Acceptor(local_port, accept_options or AcceptOptions(timeout=0), log=log)
    try:
        await acceptor.listen()
    except BaseException:
        remote.close()
        raise

    bridge = ProxyBridge(remote, acceptor, transform, log)
    bridge.start()
    emit(log, "info", f"Worker proxy listening on port {acceptor.port}", logger)
    return bridge
