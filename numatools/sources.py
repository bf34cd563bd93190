"""Discovery of NUMA nodes, page sizes and processes from sysfs and procfs."""

from __future__ import annotations

import os
import re
import subprocess
import sys
from pathlib import Path
from typing import IO, Iterable, Mapping, Optional, Union

KILOBYTE = 1024
BUF_SIZE = 2048
DEFAULT_WIDTH = 80
MIN_WIDTH = 32
MAX_WIDTH = 10_000_000

_NODE_DIR = re.compile(r"node[0-9]+")
_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")
_HUGEPAGE_FILES = (
    ("HugePages_Total", "nr_hugepages"),
    ("HugePages_Free", "free_hugepages"),
    ("HugePages_Surp", "surplus_hugepages"),
)

PathLike = Union[str, "os.PathLike[str]"]


def _atoi(text: str) -> int:
    """Leading decimal integer of ``text``, or 0 if there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _node_dir(sys_root: PathLike) -> Path:
    return Path(sys_root) / "devices" / "system" / "node"


def discover_nodes(sys_root: PathLike = "/sys") -> list[int]:
    """Return the NUMA node numbers present under sysfs, in increasing order.

    Raises FileNotFoundError if the node directory is missing or holds no nodes.
    """
    base = _node_dir(sys_root)
    nodes = sorted(
        int(entry.name[4:])
        for entry in os.scandir(base)
        if _NODE_DIR.fullmatch(entry.name)
    )
    if not nodes:
        raise FileNotFoundError(2, "no NUMA nodes found", os.fspath(base))
    return nodes


def node_headers(nodes: Iterable[int], compatibility: bool = False) -> list[str]:
    """Column headers for each node followed by ``Total``."""
    template = "node{}" if compatibility else "Node {}"
    return [template.format(node) for node in nodes] + ["Total"]


def command_name_for_pid(pid: int, proc_root: PathLike = "/proc") -> Optional[str]:
    """The ``Name:`` field of a process's status file, or None if unavailable."""
    try:
        with open(Path(proc_root) / str(pid) / "status", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                if line.startswith("Name:"):
                    name = line[5:].lstrip()
                    return name[:-1] if name.endswith("\n") else name
    except OSError:
        return None
    return None


def hugepages_bytes(node: int, token: str, sys_root: PathLike = "/sys") -> float:
    """Sum, over every huge page size, of pages times page size for one node.

    ``token`` is a meminfo key such as ``HugePages_Total``. Raises ValueError
    for any other key and FileNotFoundError if the node has no hugepages
    directory.
    """
    for prefix, name in _HUGEPAGE_FILES:
        if token.startswith(prefix):
            file_name = name
            break
    else:
        raise ValueError(f"not a huge page counter: {token!r}")

    top = _node_dir(sys_root) / f"node{node}" / "hugepages"
    if not top.is_dir():
        raise FileNotFoundError(2, "invalid path", os.fspath(top))

    total = 0.0
    for entry in sorted(os.scandir(top), key=lambda e: e.name):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if not entry.name.startswith("hugepages-"):
            continue
        page_size = _atoi(entry.name[len("hugepages-"):]) * KILOBYTE
        path = Path(entry.path) / file_name
        try:
            with open(path, encoding="ascii", errors="replace") as handle:
                first = handle.readline()
        except OSError as exc:
            print(f"cannot open {path}: {exc.strerror}")
            continue
        pages = _atoi(first) if first else 0
        total += pages * page_size
    return total


def huge_page_size_bytes(proc_root: PathLike = "/proc") -> float:
    """Default huge page size in bytes from meminfo, or 0 if not listed."""
    with open(Path(proc_root) / "meminfo", encoding="ascii", errors="replace") as handle:
        for line in handle:
            if line.startswith("Hugepagesize"):
                match = re.search(r"[0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?", line[12:])
                return (float(match.group(0)) if match else 0.0) * KILOBYTE
    return 0.0


def find_pids_by_pattern(pattern: str, proc_root: PathLike = "/proc") -> list[int]:
    """PIDs whose command name or command line contains ``pattern``.

    The calling process itself is never returned.
    """
    root = Path(proc_root)
    try:
        names = [name for name in os.listdir(root) if name[:1].isdigit() and name[:1].isascii()]
    except OSError as exc:
        print(f"Couldn't open /proc: {exc.strerror}", file=sys.stderr)
        return []
    me = os.getpid()
    found = []
    for name in sorted(names, key=_atoi):
        pid = _atoi(name)
        text = command_name_for_pid(pid, root) or ""
        try:
            raw = (root / name / "cmdline").read_bytes()
        except OSError:
            pass
        else:
            text = (text + " " + raw.decode("latin-1").replace("\0", " "))[: BUF_SIZE - 1]
        if pattern in text and pid != me:
            found.append(pid)
    return found


def _bounded(width: int) -> int:
    return DEFAULT_WIDTH if width < 1 or width > MAX_WIDTH else width


def _terminal_columns() -> int:
    try:
        result = subprocess.run(
            ["resize"], capture_output=True, text=True, check=False
        )
    except OSError:
        return DEFAULT_WIDTH
    for line in result.stdout.splitlines():
        if line.startswith("COLUMNS="):
            return _bounded(_atoi(line[8:]))
    return DEFAULT_WIDTH


def screen_width(
    environ: Optional[Mapping[str, str]] = None, stream: Optional[IO[str]] = None
) -> int:
    """Output width: ``NUMASTAT_WIDTH``, else the terminal's, else unlimited; at least 32."""
    env = os.environ if environ is None else environ
    out = sys.stdout if stream is None else stream
    value = env.get("NUMASTAT_WIDTH")
    if value is not None:
        width = _bounded(_atoi(value))
    elif out.isatty():
        width = _terminal_columns()
    else:
        width = MAX_WIDTH
    return max(width, MIN_WIDTH)


def all_digits(text: Optional[str]) -> bool:
    """True if every character is an ASCII digit; None is never all digits."""
    if text is None:
        return False
    return all(ch in "0123456789" for ch in text)


def capitalize_label(token: str) -> str:
    """Upper-case the first letter and every letter after an underscore."""
    return "_".join(part[:1].upper() + part[1:] for part in token.split("_"))