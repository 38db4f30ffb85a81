# ipcbridge - JSON message channels between controller and worker processes
from ipcbridge.accept import (
    Acceptor,
    accept,
)
from ipcbridge.base import (
    AcceptFailure,
    AcceptReason,
    ConnectFailure,
    ConnectReason,
    IPCError,
    Log,
    Message,
    ProtocolError,
    ProtocolReason,
)
from ipcbridge.codec import (
    decode_message,
    encode_message,
    read_messages,
    receive_messages,
    write_message,
)
from ipcbridge.config import (
    AcceptOptions,
    BridgeConfig,
    ConnectOptions,
    NetworkOptions,
)
from ipcbridge.connect import connect
from ipcbridge.connection import Connection
from ipcbridge.launcher import run_worker
from ipcbridge.paths import (
    PathMapping,
    convert_path,
    local_path_converter,
    parse_path_mapping,
    remote_path_converter,
)
from ipcbridge.proxy import (
    ProxyBridge,
    create_worker_proxy,
)
from ipcbridge.worker import (
    load_worker_args,
    open_channel,
)

__all__ = [
    # Base
    "IPCError",
    "ConnectFailure",
    "ConnectReason",
    "AcceptFailure",
    "AcceptReason",
    "ProtocolError",
    "ProtocolReason",
    "Log",
    "Message",
    # Options
    "ConnectOptions",
    "AcceptOptions",
    "NetworkOptions",
    "BridgeConfig",
    # Transport
    "Connection",
    "connect",
    "Acceptor",
    "accept",
    # Codec (newline-delimited JSON)
    "encode_message",
    "decode_message",
    "write_message",
    "read_messages",
    "receive_messages",
    # Proxy
    "ProxyBridge",
    "create_worker_proxy",
    # Paths
    "PathMapping",
    "convert_path",
    "local_path_converter",
    "remote_path_converter",
    "parse_path_mapping",
    # Worker processes
    "run_worker",
    "load_worker_args",
    "open_channel",
]
