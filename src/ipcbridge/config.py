"""Configuration dataclasses for connections, listeners and bridges."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ipcbridge.paths import PathMapping


@dataclass
class ConnectOptions:
    """
    Options for establishing an outbound connection.

    Attributes:
        host: Host to connect to. None means the local loopback.
        timeout: Seconds to keep retrying refused connections before giving up.
            0 disables retrying (a single attempt is made).
        retry_interval: Seconds to sleep between attempts.
        reject_closed_socket: Seconds to wait after connecting to check that the
            connection was not closed again right away. 0 disables the check.
    """
    host: Optional[str] = None
    timeout: float = 5.0
    retry_interval: float = 0.2
    reject_closed_socket: float = 0.01

    def __post_init__(self):
        for name in ("timeout", "retry_interval", "reject_closed_socket"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


@dataclass
class AcceptOptions:
    """
    Options for accepting a single inbound connection.

    Attributes:
        host: Address to listen on. None means all interfaces.
        timeout: Seconds to wait for a connection. 0 waits forever.
    """
    host: Optional[str] = None
    timeout: float = 5.0

    def __post_init__(self):
        if self.timeout < 0:
            raise ValueError("timeout must not be negative")


@dataclass
class NetworkOptions:
    """
    How a worker reaches the controller's message channel.

    Attributes:
        role: "client" connects to the controller, "server" waits for the
            controller to connect.
        port: Port to connect to or listen on.
        host: Host to connect to or address to listen on.
    """
    role: str
    port: int
    host: Optional[str] = None

    def __post_init__(self):
        if self.role not in ("client", "server"):
            raise ValueError(f"role must be 'client' or 'server', got {self.role!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NetworkOptions":
        """Build options from a parsed JSON object such as a worker argument."""
        try:
            return cls(role=data["role"], port=int(data["port"]), host=data.get("host"))
        except KeyError as e:
            raise ValueError(f"Missing network option: {e.args[0]}") from e


@dataclass
class BridgeConfig:
    """
    Configuration for a standalone bridge process.

    Attributes:
        local_port: Port the bridge listens on for the local side.
        remote_host: Host of the remote listener.
        remote_port: Port of the remote listener.
        mappings: Path mappings applied to every forwarded message.
        direction: "local-to-remote" rewrites local paths to remote ones,
            "remote-to-local" does the opposite.
        connect: Options for reaching the remote listener.
        accept: Options for the local listener.
    """
    local_port: int
    remote_host: str
    remote_port: int
    mappings: List[PathMapping] = field(default_factory=list)
    direction: str = "local-to-remote"
    connect: ConnectOptions = field(default_factory=ConnectOptions)
    accept: AcceptOptions = field(default_factory=lambda: AcceptOptions(timeout=0))

    def __post_init__(self):
        if self.direction not in ("local-to-remote", "remote-to-local"):
            raise ValueError(
                f"direction must be 'local-to-remote' or 'remote-to-local', got {self.direction!r}"
            )
