"""Memory policy names, size parsing and node-mask helpers."""

from __future__ import annotations

import enum
import re
from typing import Iterable, Iterator, Union


class Policy(enum.IntEnum):
    """Kernel NUMA memory policies."""

    DEFAULT = 0
    PREFERRED = 1
    BIND = 2
    INTERLEAVE = 3
    LOCAL = 4
    PREFERRED_MANY = 5
    WEIGHTED_INTERLEAVE = 6
    MAX = 7


# Mode flags for set_mempolicy.
MPOL_F_NUMA_BALANCING = 1 << 13
MPOL_F_RELATIVE_NODES = 1 << 14
MPOL_F_STATIC_NODES = 1 << 15

# Flags for get_mempolicy.
MPOL_F_NODE = 1 << 0
MPOL_F_ADDR = 1 << 1
MPOL_F_MEMS_ALLOWED = 1 << 2

# Flags for mbind.
MPOL_MF_STRICT = 1 << 0
MPOL_MF_MOVE = 1 << 1
MPOL_MF_MOVE_ALL = 1 << 2

_POLICY_NAMES = (
    "default",
    "preferred",
    "bind",
    "interleave",
    "local",
    "preferred-many",
    "weighted-interleave",
)

# (command-line name, policy, usable without a node argument)
_POLICIES = (
    ("preferred-many", Policy.PREFERRED_MANY, False),
    ("local", Policy.LOCAL, True),
    ("interleave", Policy.INTERLEAVE, False),
    ("membind", Policy.BIND, False),
    ("preferred", Policy.PREFERRED, False),
    ("default", Policy.DEFAULT, True),
    ("weighted-interleave", Policy.WEIGHTED_INTERLEAVE, False),
)

_NUMBER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_UNIT_POWERS = {"K": 1, "M": 2, "G": 3}

Mask = Union[int, Iterable[int]]


def _to_int(sign: str, digits: str) -> int:
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def memsize(text: str) -> int:
    """Parse a size such as ``512``, ``0x100``, ``64k``, ``10M`` or ``2g`` into bytes.

    Text without a leading number yields 0; an unknown suffix is ignored.
    """
    match = _NUMBER.match(text)
    if match is None:
        return 0
    value = _to_int(*match.groups())
    suffix = text[match.end():match.end() + 1].upper()
    return value * 1024 ** _UNIT_POWERS.get(suffix, 0)


def parse_policy(name: str | None, arg: str | None) -> Policy:
    """Map a policy option name (leading dashes allowed) to a :class:`Policy`.

    Raises ValueError for an unknown name, or when a policy that needs a
    node argument is given none.
    """
    if name is None:
        return Policy.DEFAULT
    key = name.lstrip("-")
    for policy_key, policy, takes_no_arg in _POLICIES:
        if policy_key == key:
            if arg is None and not takes_no_arg:
                raise ValueError(f"policy {key!r} needs a node argument")
            return policy
    raise ValueError(f"unknown policy {name!r}")


def policy_name(policy: int) -> str:
    """Return the display name of a policy number, or ``[n]`` if unknown."""
    if 0 <= policy < len(_POLICY_NAMES):
        return _POLICY_NAMES[policy]
    return f"[{int(policy)}]"


def print_policies() -> str:
    """Print the policy names accepted by :func:`parse_policy` and return the line."""
    line = "Policies: " + " ".join(name for name, _, _ in _POLICIES)
    print(line)
    return line


def _bits(mask: Mask) -> Iterator[int]:
    if isinstance(mask, int):
        bit = 0
        while mask >> bit:
            if (mask >> bit) & 1:
                yield bit
            bit += 1
    else:
        yield from sorted(set(mask))


def format_mask(name: str, mask: Mask) -> str:
    """Format a node mask as ``name: n1 n2 ...`` (each number followed by a space)."""
    return f"{name}: " + "".join(f"{bit} " for bit in _bits(mask))


def find_first(mask: Mask) -> int | None:
    """Return the lowest set node in ``mask``, or None if it is empty."""
    return next(_bits(mask), None)