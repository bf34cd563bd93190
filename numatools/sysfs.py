"""Reading small sysfs files and node lists."""

from __future__ import annotations

import os
import re
from typing import Union

SYSFS_BLOCK = 4096

_NUMBER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_DIGITS = "0123456789"

PathLike = Union[str, "os.PathLike[str]"]


class NodeParseError(ValueError):
    """A sysfs node list could not be parsed."""


def _to_int(sign: str, digits: str) -> int:
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def sysfs_read(path: PathLike) -> str:
    """Return at most one block (less one byte) of a sysfs file."""
    with open(path, "rb") as handle:
        data = handle.read(SYSFS_BLOCK - 1)
    return data.decode("ascii", errors="replace")


def sysfs_node_read(path: PathLike, max_nodes: int) -> set[int]:
    """Parse a list of node numbers separated by commas or spaces.

    Raises NodeParseError on text that is not a number, a negative node,
    or a node not below ``max_nodes``.
    """
    text = sysfs_read(path)
    nodes: set[int] = set()
    pos = 0
    while True:
        match = _NUMBER.match(text, pos)
        if match is None:
            raise NodeParseError(f"{os.fspath(path)}: no node number at offset {pos}")
        node = _to_int(*match.groups())
        if node < 0:
            raise NodeParseError(f"{os.fspath(path)}: negative node {node}")
        if node >= max_nodes:
            raise NodeParseError(f"{os.fspath(path)}: node {node} out of range")
        nodes.add(node)
        pos = match.end()
        while pos < len(text) and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        if pos >= len(text) or text[pos] not in _DIGITS:
            return nodes