"""Prefix rewriting of filesystem paths between two namespaces.

A list of `PathMapping`s defines a one-directional rewrite: the first mapping
whose prefix matches wins, and a path that matches no mapping is returned
unchanged.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass

PathConverter = Callable[[str], str]
"""A function rewriting one path."""


@dataclass(frozen=True)
class PathMapping:
    """A pair of path prefixes that denote the same directory on both sides."""
    local: str
    remote: str


def convert_path(path: str, src_prefix: str, dst_prefix: str) -> str:
    """Replace `src_prefix` at the start of `path` with `dst_prefix`."""
    if path.startswith(src_prefix):
        return dst_prefix + path[len(src_prefix):]
    return path


def local_path_converter(mappings: Sequence[PathMapping]) -> PathConverter:
    """Build a converter that rewrites local paths to remote paths."""
    mappings = tuple(mappings)

    def convert(path: str) -> str:
        for mapping in mappings:
            if path.startswith(mapping.local):
                return mapping.remote + path[len(mapping.local):]
        return path

    return convert


def remote_path_converter(mappings: Sequence[PathMapping]) -> PathConverter:
    """Build a converter that rewrites remote paths to local paths."""
    mappings = tuple(mappings)

    def convert(path: str) -> str:
        for mapping in mappings:
            if path.startswith(mapping.remote):
                return mapping.local + path[len(mapping.remote):]
        return path

    return convert


def parse_path_mapping(text: str) -> PathMapping:
    """Parse `LOCAL=REMOTE` into a `PathMapping`.

    Raises:
        ValueError: If `text` has no `=` or either side is empty.
    """
    local, sep, remote = text.partition("=")
    if not sep or not local or not remote:
        raise ValueError(f"Path mapping must look like LOCAL=REMOTE, got {text!r}")
    return PathMapping(local=local, remote=remote)
