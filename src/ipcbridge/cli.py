"""Command line entry point: run a path-rewriting bridge as its own process.

```
ipcbridge proxy --local-port 8124 --remote-host controller --remote-port 8123 \\
    --map /home/me/project=/workspace
```
"""

import argparse
import asyncio
import logging
import sys

from ipcbridge.base import IPCError, Log
from ipcbridge.config import AcceptOptions, BridgeConfig, ConnectOptions
from ipcbridge.messages import convert_message
from ipcbridge.paths import local_path_converter, parse_path_mapping, remote_path_converter
from ipcbridge.proxy import Transform, create_worker_proxy

logger = logging.getLogger("ipcbridge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipcbridge",
        description="Bridge JSON message channels between network namespaces",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    proxy = subparsers.add_parser(
        "proxy", help="Forward one local connection to a remote listener, rewriting paths"
    )
    proxy.add_argument("--local-port", type=int, required=True, help="Port to listen on locally")
    proxy.add_argument("--remote-host", default="localhost", help="Host of the remote listener")
    proxy.add_argument("--remote-port", type=int, required=True, help="Port of the remote listener")
    proxy.add_argument(
        "--map",
        dest="mappings",
        action="append",
        type=parse_path_mapping,
        default=[],
        metavar="LOCAL=REMOTE",
        help="Path prefix mapping (repeatable, first match wins)",
    )
    proxy.add_argument(
        "--direction",
        choices=["local-to-remote", "remote-to-local"],
        default="local-to-remote",
        help="Which way paths are rewritten",
    )
    proxy.add_argument(
        "--connect-timeout", type=float, default=5.0,
        help="Seconds to keep retrying the remote connection (0 = single attempt)",
    )
    proxy.add_argument(
        "--retry-interval", type=float, default=0.2, help="Seconds between connection attempts"
    )
    proxy.add_argument(
        "--accept-timeout", type=float, default=0.0,
        help="Seconds to wait for the local connection (0 = forever)",
    )
    proxy.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> BridgeConfig:
    """Build a `BridgeConfig` from parsed `proxy` arguments."""
    return BridgeConfig(
        local_port=args.local_port,
        remote_host=args.remote_host,
        remote_port=args.remote_port,
        mappings=list(args.mappings),
        direction=args.direction,
        connect=ConnectOptions(timeout=args.connect_timeout, retry_interval=args.retry_interval),
        accept=AcceptOptions(timeout=args.accept_timeout),
    )


def make_transform(config: BridgeConfig) -> Transform:
    """Build the message transform that rewrites paths as `config` describes."""
    if config.direction == "local-to-remote":
        convert = local_path_converter(config.mappings)
    else:
        convert = remote_path_converter(config.mappings)
    return lambda msg: convert_message(msg, convert)


async def run_bridge(config: BridgeConfig, log: Log | None = None) -> None:
    """Run one bridge until either side closes."""
    bridge = await create_worker_proxy(
        config.local_port,
        config.remote_host,
        config.remote_port,
        make_transform(config),
        connect_options=config.connect,
        accept_options=config.accept,
        log=log,
    )
    try:
        await bridge.wait_closed()
    finally:
        bridge.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    config = config_from_args(args)
    try:
        asyncio.run(run_bridge(config, logger))
    except IPCError as e:
        logger.error(f"Bridge failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Bridge stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
