"""Worker-side helpers: read the launcher's arguments and open the message channel.

## Usage

```python
from ipcbridge import NetworkOptions, load_worker_args, open_channel, write_message

args = load_worker_args()
conn = await open_channel(NetworkOptions.from_dict(args["network"]))
await write_message(conn, {"type": "suite", "id": "root", "children": []})
```
"""

import json
import sys
from collections.abc import Sequence
from typing import Any

from ipcbridge.accept import accept
from ipcbridge.base import Log
from ipcbridge.config import AcceptOptions, ConnectOptions, NetworkOptions
from ipcbridge.connect import connect
from ipcbridge.connection import Connection


def load_worker_args(argv: Sequence[str] | None = None) -> Any:
    """Parse the JSON-encoded argument passed by `run_worker()`.

    Raises:
        ValueError: If there is no argument or it is not valid JSON.
    """
    argv = sys.argv if argv is None else argv
    if len(argv) < 2:
        raise ValueError("Expected the worker arguments as the first command line argument")
    try:
        return json.loads(argv[1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Worker arguments are not valid JSON: {e}") from e


async def open_channel(
    options: NetworkOptions,
    *,
    timeout: float = 5.0,
    log: Log | None = None,
) -> Connection:
    """Reach the controller as described by `options`.

    A "client" worker connects to the controller (retrying for `timeout`
    seconds); a "server" worker waits `timeout` seconds for the controller to
    connect.

    Raises:
        ConnectFailure: If a client worker cannot connect.
        AcceptFailure: If a server worker cannot listen or times out.
    """
    if options.role == "client":
        return await connect(options.port, ConnectOptions(host=options.host, timeout=timeout), log=log)
    return await accept(options.port, AcceptOptions(host=options.host, timeout=timeout), log=log)
