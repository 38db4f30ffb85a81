"""Path rewriting for test-suite and test descriptors.

Workers report test trees and test events as JSON messages. The only fields
that carry filesystem paths are the `file` fields of suite and test
descriptors, which nest through `children`. The functions here rewrite those
fields with a `PathConverter` and return new objects, leaving their input
untouched.

Message shapes:

- descriptor: `{"type": "suite" | "test", "id": ..., "file": ..., "children": [...]}`
- event: `{"type": "suite", "suite": <descriptor or id>, ...}` or
  `{"type": "test", "test": <descriptor or id>, ...}`
- anything else (strings, `None`, error objects) passes through unchanged.

The worker's own launch arguments carry paths too (`testFiles`, `mochaPath`);
`convert_worker_args()` rewrites them before they are handed to a worker in
another namespace.
"""

from typing import Any

from ipcbridge.base import Message
from ipcbridge.paths import PathConverter


def convert_info(info: dict[str, Any], convert: PathConverter) -> dict[str, Any]:
    """Rewrite the `file` fields of a descriptor and all its children."""
    result = dict(info)
    if info.get("file"):
        result["file"] = convert(info["file"])
    if info.get("type") == "suite":
        result["children"] = [convert_info(child, convert) for child in info.get("children", [])]
    return result


def convert_event(event: dict[str, Any], convert: PathConverter) -> dict[str, Any]:
    """Rewrite the descriptor embedded in a suite or test event.

    Events that refer to their suite or test by id are returned unchanged.
    """
    key = "suite" if event.get("type") == "suite" else "test"
    if isinstance(event.get(key), dict):
        return {**event, key: convert_info(event[key], convert)}
    return event


def convert_test_load_message(msg: Message, convert: PathConverter) -> Message:
    """Rewrite a message sent while loading tests (a suite tree, a log line or an error)."""
    if isinstance(msg, dict) and msg.get("type") == "suite":
        return convert_info(msg, convert)
    return msg


def convert_test_run_message(msg: Message, convert: PathConverter) -> Message:
    """Rewrite a message sent while running tests (an event or a log line)."""
    if isinstance(msg, dict) and msg.get("type") in ("suite", "test"):
        return convert_event(msg, convert)
    return msg


def convert_message(msg: Message, convert: PathConverter) -> Message:
    """Rewrite any worker message, telling events and descriptors apart by shape."""
    if not isinstance(msg, dict):
        return msg
    msg_type = msg.get("type")
    if msg_type in ("suite", "test") and msg_type in msg:
        return convert_event(msg, convert)
    if msg_type in ("suite", "test"):
        return convert_info(msg, convert)
    return msg


def convert_worker_args(args: dict[str, Any], convert: PathConverter) -> dict[str, Any]:
    """Rewrite the paths in a worker's launch arguments (`testFiles` and `mochaPath`)."""
    result = dict(args)
    if "testFiles" in args:
        result["testFiles"] = [convert(path) for path in args["testFiles"]]
    if args.get("mochaPath"):
        result["mochaPath"] = convert(args["mochaPath"])
    return result
