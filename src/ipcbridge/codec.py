"""Newline-delimited JSON message codec.

Wire format: every message is one JSON value serialized on a single line,
followed by `\\n`. There is no length prefix and no other framing.

## Usage

```python
from ipcbridge.codec import write_message, read_messages

await write_message(conn, {"type": "test", "file": "/work/a.py"})

async for msg in read_messages(conn):
    print(msg)
```
"""

import asyncio
import inspect
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ipcbridge.base import Message, ProtocolError, ProtocolReason
from ipcbridge.connection import Connection

MessageHandler = Callable[[Message], Awaitable[None] | None]
"""Called with every decoded message. May be a plain function or a coroutine function."""

ErrorHandler = Callable[[ProtocolError], None]
"""Called with every line that could not be decoded."""


def encode_message(msg: Message) -> bytes:
    """Serialize `msg` as one newline-terminated JSON line."""
    return (json.dumps(msg, ensure_ascii=False) + "\n").encode("utf-8")


def decode_message(line: bytes) -> Message:
    """Parse one line (without its terminator) into a message.

    Raises:
        ProtocolError: If the line is not valid UTF-8 or not valid JSON.
    """
    try:
        return json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(ProtocolReason.MALFORMED_MESSAGE, line, e) from e


async def write_message(conn: Connection, msg: Message) -> None:
    """Send `msg` over `conn`."""
    await conn.write(encode_message(msg))


async def read_lines(conn: Connection) -> AsyncIterator[bytes]:
    """Yield the non-empty lines arriving on `conn` until the peer ends the stream.

    Lines may be terminated by `\\n` or `\\r\\n`. A final line without a
    terminator is yielded when the stream ends.
    """
    buffer = bytearray()
    # Bytes before this offset are known to hold no newline
    scan_from = 0
    while True:
        chunk = await conn.read()
        if not chunk:
            break
        buffer += chunk
        line_start = 0
        while True:
            newline = buffer.find(b"\n", scan_from)
            if newline == -1:
                break
            line = bytes(buffer[line_start:newline]).rstrip(b"\r")
            if line.strip():
                yield line
            line_start = scan_from = newline + 1
        if line_start:
            del buffer[:line_start]
        scan_from = len(buffer)
    if buffer.strip():
        yield bytes(buffer).rstrip(b"\r")


async def read_messages(conn: Connection) -> AsyncIterator[Message]:
    """Yield every message arriving on `conn` until the peer ends the stream.

    Raises:
        ProtocolError: On the first malformed line. Messages before it have
            already been yielded.
    """
    async for line in read_lines(conn):
        yield decode_message(line)


def receive_messages(
    conn: Connection,
    handler: MessageHandler,
    on_error: ErrorHandler | None = None,
) -> asyncio.Task:
    """Call `handler` for every message arriving on `conn`, in a background task.

    Args:
        conn: Connection to read from
        handler: Called with each decoded message, awaited if it returns an awaitable
        on_error: Called with the `ProtocolError` of each malformed line; decoding
            then continues with the next line. If None, the first malformed line
            fails the task with that `ProtocolError`.

    Returns:
        The task, which finishes when the peer ends the stream.
    """

    async def pump() -> None:
        async for line in read_lines(conn):
            try:
                msg = decode_message(line)
            except ProtocolError as e:
                if on_error is None:
                    raise
                on_error(e)
                continue
            result: Any = handler(msg)
            if inspect.isawaitable(result):
                await result

    return asyncio.create_task(pump())
