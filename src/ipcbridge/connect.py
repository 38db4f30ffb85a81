"""Connector: outbound TCP connections that tolerate a callee's startup window.

The callee (usually a worker process) may not be listening yet when the
caller starts connecting, so refused attempts are retried until a deadline.

Proxies such as Docker's port forwarding or SSH tunnels accept a TCP
connection before they know whether their own target is reachable, and close
it again right away if it is not. Such a connection looks like a success at
the TCP level, so after connecting we wait a short grace window and reject
the connection if it was closed in the meantime.

## Usage

```python
from ipcbridge import ConnectOptions, connect

conn = await connect(8123, ConnectOptions(host="worker", timeout=10.0))
```
"""

import asyncio
import logging

from ipcbridge.base import ConnectFailure, ConnectReason, Log, emit
from ipcbridge.config import ConnectOptions
from ipcbridge.connection import Connection

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"


async def connect(
    port: int,
    options: ConnectOptions | None = None,
    *,
    log: Log | None = None,
) -> Connection:
    """Connect to `port` and return the verified-open connection.

    If `options.timeout` is positive, failed attempts are retried every
    `options.retry_interval` seconds until `options.timeout` seconds have
    passed since the first attempt.

    Args:
        port: Port to connect to
        options: Connection options (defaults to `ConnectOptions()`)
        log: Logger for connection events (defaults to this module's logger)

    Raises:
        ConnectFailure: With reason `REFUSED` or `REJECTED_CLOSED` when a single
            attempt fails, or `TIMEOUT` when retrying ran past the deadline.
    """
    options = options or ConnectOptions()
    if options.timeout <= 0:
        return await _connect_once(port, options, log)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + options.timeout
    while True:
        attempt_timeout = max(deadline - loop.time(), options.retry_interval)
        try:
            return await _connect_once(port, options, log, attempt_timeout)
        except ConnectFailure as e:
            if loop.time() >= deadline:
                emit(log, "warning", "Giving up.", logger)
                raise ConnectFailure(ConnectReason.TIMEOUT, options.host, port, e) from e
            await asyncio.sleep(options.retry_interval)
            emit(log, "info", "Retrying...", logger)


async def _connect_once(
    port: int,
    options: ConnectOptions,
    log: Log | None,
    timeout: float | None = None,
) -> Connection:
    """Make a single connection attempt, bounded by `timeout` seconds if given."""
    host = options.host or DEFAULT_HOST
    opening = asyncio.open_connection(host, port)
    try:
        if timeout is None:
            reader, writer = await opening
        else:
            reader, writer = await asyncio.wait_for(opening, timeout)
    except asyncio.TimeoutError as e:
        emit(log, "info", f"IPC client timed out connecting to {host}:{port}", logger)
        raise ConnectFailure(ConnectReason.TIMEOUT, options.host, port, e) from e
    except OSError as e:
        emit(log, "info", f"IPC client failed to connect to server: {e}", logger)
        raise ConnectFailure(ConnectReason.REFUSED, options.host, port, e) from e

    emit(log, "info", "IPC client connected to server", logger)
    conn = Connection(reader, writer, log)

    if options.reject_closed_socket > 0:
        try:
            await asyncio.sleep(options.reject_closed_socket)
        except asyncio.CancelledError:
            conn.close()
            raise
        if conn.is_closed:
            emit(log, "info", "IPC client socket was closed immediately", logger)
            conn.close()
            raise ConnectFailure(ConnectReason.REJECTED_CLOSED, options.host, port)

    return conn
