"""
Tests for the acceptor.

Covers:
- Accepting exactly one connection and refusing later ones
- Timing out without a client
- Listen errors
- One-shot and close() semantics of Acceptor
- Disconnect logging
- Port 0 on all interfaces, and a second client arriving at once
"""

import asyncio
import time

import pytest

from ipcbridge import (
    AcceptFailure,
    AcceptOptions,
    AcceptReason,
    Acceptor,
    ConnectFailure,
    ConnectOptions,
    ConnectReason,
    accept,
    connect,
    read_messages,
    write_message,
)

HOST = "127.0.0.1"


def single_attempt():
    return ConnectOptions(host=HOST, timeout=0)


# ==============================================================================
# Accepting
# ==============================================================================

@pytest.mark.asyncio
async def test_accept_first_connection(free_port):
    accept_task = asyncio.create_task(accept(free_port, AcceptOptions(host=HOST)))
    client = await connect(free_port, ConnectOptions(host=HOST, timeout=2.0, retry_interval=0.02))
    server = await accept_task

    await write_message(client, {"hello": "server"})
    client.close()
    assert [msg async for msg in read_messages(server)] == [{"hello": "server"}]
    server.close()


@pytest.mark.asyncio
async def test_accept_stops_listening_after_first_connection():
    acceptor = Acceptor(0, AcceptOptions(host=HOST))
    await acceptor.listen()
    assert acceptor.is_listening
    port = acceptor.port
    assert port != 0

    client, server = await asyncio.gather(
        connect(port, single_attempt()),
        acceptor.accept(),
    )
    assert not acceptor.is_listening

    with pytest.raises(ConnectFailure) as exc_info:
        await connect(port, single_attempt())
    assert exc_info.value.reason is ConnectReason.REFUSED

    # The accepted connection is still usable
    await write_message(server, "still open")
    server.close()
    assert [msg async for msg in read_messages(client)] == ["still open"]
    client.close()


# ==============================================================================
# Failures
# ==============================================================================

@pytest.mark.asyncio
async def test_accept_times_out(free_port):
    start = time.monotonic()
    with pytest.raises(AcceptFailure) as exc_info:
        await accept(free_port, AcceptOptions(host=HOST, timeout=0.3))
    elapsed = time.monotonic() - start

    assert exc_info.value.reason is AcceptReason.TIMEOUT
    assert 0.25 <= elapsed < 1.0

    # The listening socket is gone
    with pytest.raises(ConnectFailure):
        await connect(free_port, single_attempt())


@pytest.mark.asyncio
async def test_accept_listen_error():
    occupied = Acceptor(0, AcceptOptions(host=HOST))
    await occupied.listen()
    try:
        with pytest.raises(AcceptFailure) as exc_info:
            await accept(occupied.port, AcceptOptions(host=HOST))
        assert exc_info.value.reason is AcceptReason.LISTEN_ERROR
        assert isinstance(exc_info.value.cause, OSError)
    finally:
        occupied.close()


@pytest.mark.asyncio
async def test_accept_logs_timeout(free_port, recording_log):
    with pytest.raises(AcceptFailure):
        await accept(free_port, AcceptOptions(host=HOST, timeout=0.1), log=recording_log)

    assert recording_log.messages("error") == [
        "IPC server timed out before receiving a client connection"
    ]


# ==============================================================================
# Acceptor lifecycle
# ==============================================================================

@pytest.mark.asyncio
async def test_acceptor_accepts_only_once():
    acceptor = Acceptor(0, AcceptOptions(host=HOST))
    await acceptor.listen()
    client, server = await asyncio.gather(connect(acceptor.port, single_attempt()), acceptor.accept())

    with pytest.raises(RuntimeError):
        await acceptor.accept()

    client.close()
    server.close()


@pytest.mark.asyncio
async def test_acceptor_close_cancels_pending_accept():
    acceptor = Acceptor(0, AcceptOptions(host=HOST, timeout=0))
    await acceptor.listen()
    port = acceptor.port

    accept_task = asyncio.create_task(acceptor.accept())
    await asyncio.sleep(0.05)
    acceptor.close()
    acceptor.close()

    with pytest.raises(asyncio.CancelledError):
        await accept_task
    assert not acceptor.is_listening
    with pytest.raises(ConnectFailure):
        await connect(port, single_attempt())


@pytest.mark.asyncio
async def test_acceptor_context_manager():
    async with Acceptor(0, AcceptOptions(host=HOST)) as acceptor:
        assert acceptor.is_listening
    assert not acceptor.is_listening


# ==============================================================================
# Logging
# ==============================================================================

@pytest.mark.asyncio
async def test_disconnect_is_logged(recording_log):
    acceptor = Acceptor(0, AcceptOptions(host=HOST), log=recording_log)
    await acceptor.listen()
    client, server = await asyncio.gather(connect(acceptor.port, single_attempt()), acceptor.accept())

    client.close()
    assert [msg async for msg in read_messages(server)] == []
    assert await server.read() == b""

    infos = recording_log.messages("info")
    assert "IPC server received client connection" in infos
    assert infos.count("IPC server received disconnect from client") == 1
    server.close()


# ==============================================================================
# Binding and concurrent clients
# ==============================================================================

@pytest.mark.asyncio
async def test_port_zero_on_all_interfaces_is_reachable_over_ipv4():
    acceptor = Acceptor(0, AcceptOptions(timeout=2.0))
    await acceptor.listen()

    client, server = await asyncio.gather(connect(acceptor.port, single_attempt()), acceptor.accept())

    assert server.sockname[1] == acceptor.port
    client.close()
    server.close()


@pytest.mark.asyncio
async def test_second_concurrent_connection_is_dropped():
    acceptor = Acceptor(0, AcceptOptions(host=HOST, timeout=2.0))
    await acceptor.listen()

    opened = await asyncio.gather(
        asyncio.open_connection(HOST, acceptor.port),
        asyncio.open_connection(HOST, acceptor.port),
        return_exceptions=True,
    )
    server = await acceptor.accept()
    await write_message(server, "hello")

    clients = [pair for pair in opened if not isinstance(pair, BaseException)]
    replies = []
    for reader, writer in clients:
        try:
            replies.append(await asyncio.wait_for(reader.read(100), 2.0))
        except ConnectionError:
            replies.append(b"")
        writer.close()

    assert replies.count(b'"hello"\n') == 1
    assert all(reply in (b'"hello"\n', b"") for reply in replies)
    assert not acceptor.is_listening
    server.close()
