"""Pytest configuration and shared fixtures."""

import asyncio
import socket

import pytest
import pytest_asyncio
from hypothesis import settings

from ipcbridge import AcceptOptions, Acceptor, ConnectOptions, connect

# Create a profile named "no_deadline" with deadline disabled.
settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")

HOST = "127.0.0.1"


def get_free_port() -> int:
    """Return a loopback port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((HOST, 0))
        return s.getsockname()[1]


@pytest.fixture
def free_port():
    """A loopback port nothing is listening on."""
    return get_free_port()


class RecordingLog:
    """Logger that remembers every message."""

    def __init__(self):
        self.records: list[tuple[str, str]] = []

    def _record(self, level, msg):
        self.records.append((level, msg))

    def debug(self, msg):
        self._record("debug", msg)

    def info(self, msg):
        self._record("info", msg)

    def warning(self, msg):
        self._record("warning", msg)

    def error(self, msg):
        self._record("error", msg)

    def messages(self, level=None):
        return [msg for lvl, msg in self.records if level is None or lvl == level]


class BrokenLog:
    """Logger whose every call fails."""

    def _fail(self, msg):
        raise RuntimeError("logger is broken")

    debug = info = warning = error = _fail


@pytest.fixture
def recording_log():
    return RecordingLog()


@pytest.fixture
def broken_log():
    return BrokenLog()


@pytest_asyncio.fixture
async def connection_pair():
    """A connected (client, server) pair of Connections on the loopback."""
    acceptor = Acceptor(0, AcceptOptions(host=HOST))
    await acceptor.listen()
    client, server = await asyncio.gather(
        connect(acceptor.port, ConnectOptions(host=HOST)),
        acceptor.accept(),
    )
    yield client, server
    client.close()
    server.close()
    await client.wait_closed()
    await server.wait_closed()
