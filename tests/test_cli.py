"""Tests for the command line bridge."""

import asyncio

import pytest

from ipcbridge import (
    AcceptOptions,
    Acceptor,
    BridgeConfig,
    ConnectOptions,
    PathMapping,
    connect,
    read_messages,
    write_message,
)
from ipcbridge.cli import build_parser, config_from_args, main, make_transform, run_bridge

HOST = "127.0.0.1"


def test_parse_proxy_arguments():
    args = build_parser().parse_args([
        "proxy",
        "--local-port", "8124",
        "--remote-host", "controller",
        "--remote-port", "8123",
        "--map", "/home/me=/workspace",
        "--map", "/opt=/srv",
        "--connect-timeout", "2.5",
    ])
    config = config_from_args(args)

    assert config.local_port == 8124
    assert config.remote_host == "controller"
    assert config.remote_port == 8123
    assert config.mappings == [PathMapping("/home/me", "/workspace"), PathMapping("/opt", "/srv")]
    assert config.direction == "local-to-remote"
    assert config.connect.timeout == 2.5
    assert config.accept.timeout == 0


def test_bad_mapping_is_a_usage_error():
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            ["proxy", "--local-port", "1", "--remote-port", "2", "--map", "no-equals-sign"]
        )


def test_make_transform_directions():
    mappings = [PathMapping("/local", "/remote")]
    to_remote = make_transform(BridgeConfig(1, "h", 2, mappings=mappings))
    to_local = make_transform(BridgeConfig(1, "h", 2, mappings=mappings, direction="remote-to-local"))

    assert to_remote({"type": "test", "id": "t", "file": "/local/a.py"})["file"] == "/remote/a.py"
    assert to_local({"type": "test", "id": "t", "file": "/remote/a.py"})["file"] == "/local/a.py"
    assert to_remote("plain log line") == "plain log line"


@pytest.mark.asyncio
async def test_run_bridge_forwards_until_local_closes(free_port):
    async with Acceptor(0, AcceptOptions(host=HOST)) as remote_acceptor:
        config = BridgeConfig(
            local_port=free_port,
            remote_host=HOST,
            remote_port=remote_acceptor.port,
            mappings=[PathMapping("/local/", "/remote/")],
            accept=AcceptOptions(host=HOST, timeout=0),
        )
        bridge_task = asyncio.create_task(run_bridge(config))
        remote_conn = await remote_acceptor.accept()

    client = await connect(free_port, ConnectOptions(host=HOST, timeout=2.0, retry_interval=0.02))
    await write_message(client, {"type": "test", "id": "t1", "file": "/local/a.js"})
    client.close()

    received = [msg async for msg in read_messages(remote_conn)]
    await asyncio.wait_for(bridge_task, 2.0)

    assert received == [{"type": "test", "id": "t1", "file": "/remote/a.js"}]
    remote_conn.close()


def test_main_reports_connect_failure(free_port):
    code = main([
        "proxy",
        "--local-port", "0",
        "--remote-host", HOST,
        "--remote-port", str(free_port),
        "--connect-timeout", "0",
    ])
    assert code == 1
