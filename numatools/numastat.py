"""Per-node memory usage reports for the system and for processes."""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import Optional, Sequence

from .sources import (
    all_digits,
    capitalize_label,
    command_name_for_pid,
    discover_nodes,
    find_pids_by_pattern,
    huge_page_size_bytes,
    hugepages_bytes,
    node_headers,
)
from .sources import screen_width as detect_screen_width
from .table import Justify, Table

KILOBYTE = 1024
MEGABYTE = 1024 * 1024
EXIT_SUCCESS = 0
EXIT_FAILURE = 1

PROG_NAME = "numastat"
VM_PGSZ_STR = "kernelpagesize_kB="

# Rows of the per-process table, in display order.
PROCESS_LABELS = ("Huge", "Heap", "Stack", "Private")
_CATEGORY_PREFIXES = ("huge", "heap", "stack")
PROCESS_HUGE_INDEX = 0
PROCESS_PRIVATE_INDEX = 3

_DELIMITERS = re.compile(r"[ \t\r\n:]+")
_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")
_NODE_ENTRY = re.compile(r"N([+-]?[0-9]+)?=([+-]?[0-9]+)?")

_USAGE = (
    "Usage: {prog} [-c] [-m] [-n] [-p <PID>|<pattern>] [-s[<node>]] [-v] [-V] [-z] "
    "[ <PID>|<pattern>... ]\n"
    "-c to minimize column widths\n"
    "-m to show meminfo-like system-wide memory usage\n"
    "-n to show the numastat statistics info\n"
    "-p <PID>|<pattern> to show process info\n"
    "-s[<node>] to sort data by total column or <node>\n"
    "-v to make some reports more verbose\n"
    "-V to show the {prog} code version\n"
    "-z to skip rows and columns of zeros\n"
)


class _UsageError(ValueError):
    """The command line could not be understood."""


def _default_page_size() -> float:
    return float(os.sysconf("SC_PAGE_SIZE"))


@dataclass
class Options:
    """Settings chosen on the command line, plus the data roots and page sizes."""

    compress_display: bool = False
    show_system_info: bool = False
    show_numastat_info: bool = False
    pid_specs: list[str] = field(default_factory=list)
    sort_table: bool = False
    sort_table_node: int = -1
    verbose: bool = False
    show_zero_data: bool = True
    show_version: bool = False
    compatibility_mode: bool = False
    screen_width: Optional[int] = None
    page_size: float = field(default_factory=_default_page_size)
    huge_page_size: float = 0.0
    sys_root: str = "/sys"
    proc_root: str = "/proc"


def _atol(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str]) -> Options:
    """Parse numastat options; raises ValueError on an unknown or incomplete option."""
    args = list(argv)
    options = Options(compatibility_mode=not args)
    positional: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        i += 1
        if arg == "--":
            positional.extend(args[i:])
            break
        if arg.startswith("--"):
            name = arg[2:].split("=", 1)[0]
            if name and "help".startswith(name):
                raise _UsageError("help requested")
            raise _UsageError(f"unrecognized option '{arg}'")
        if not arg.startswith("-") or arg == "-":
            positional.append(arg)
            continue
        j = 1
        while j < len(arg):
            ch = arg[j]
            j += 1
            if ch == "c":
                options.compress_display = True
            elif ch == "m":
                options.show_system_info = True
            elif ch == "n":
                options.show_numastat_info = True
            elif ch == "v":
                options.verbose = True
            elif ch == "z":
                options.show_zero_data = False
            elif ch == "V":
                options.show_version = True
                return options
            elif ch == "p":
                rest = arg[j:]
                if rest:
                    value = rest
                elif i < len(args):
                    value = args[i]
                    i += 1
                else:
                    raise _UsageError("option requires an argument -- 'p'")
                options.pid_specs.append(value)
                break
            elif ch == "s":
                options.sort_table = True
                rest = arg[j:]
                if rest and all_digits(rest):
                    options.sort_table_node = int(rest)
                break
            else:
                raise _UsageError(f"invalid option -- '{ch}'")
    options.pid_specs.extend(positional)
    return options


def _width(options: Options) -> int:
    return options.screen_width if options.screen_width is not None else detect_screen_width()


def _sort_col(options: Options, nodes: Sequence[int], header_cols: int, total_col: int) -> int:
    node = options.sort_table_node
    if 0 <= node < len(nodes) and node in nodes:
        return header_cols + list(nodes).index(node)
    return total_col


def _read_lines(path: Path) -> list[str]:
    with open(path, encoding="ascii", errors="replace") as handle:
        return handle.readlines()


def system_file_report(options: Options, nodes: Sequence[int], file: str, tok_offset: int) -> str:
    """Tabulate a per-node sysfs file (``numastat`` or ``meminfo``) across all nodes.

    Raises OSError if a node's file cannot be read.
    """
    nodes = list(nodes)
    compat = options.compatibility_mode
    headers = node_headers(nodes, compat)
    base = Path(options.sys_root) / "devices" / "system" / "node"
    first_lines = _read_lines(base / f"node{nodes[0]}" / file)

    num_nodes = len(nodes)
    header_rows = 1 if compat else 2
    header_cols = 1
    table = Table(header_rows, header_cols, len(first_lines), num_nodes + 1)
    total_col = header_cols + num_nodes
    index: dict[str, int] = {}
    notes: list[str] = []

    table.set_col_width(0, 16)
    table.set_col_justification(0, Justify.LEFT)
    for node_ix in range(num_nodes + (0 if compat else 1)):
        col = header_cols + node_ix
        table.set_string(0, col, headers[node_ix])
        if not compat:
            table.set_repchar(1, col, "-")
            table.set_col_decimal_places(col, 0 if options.compress_display else 2)
        table.set_col_width(col, 16)
        table.set_col_justification(col, Justify.RIGHT)
        if node_ix == num_nodes:
            break
        node = nodes[node_ix]
        lines = first_lines if node_ix == 0 else _read_lines(base / f"node{node}" / file)
        row = 0
        for line in lines:
            tok = [t for t in _DELIMITERS.split(line) if t]
            if len(tok) <= tok_offset:
                continue
            key = tok[tok_offset]
            if node_ix == 0:
                index.setdefault(key, row)
                if compat or file.startswith("meminfo"):
                    label = key
                else:
                    label = capitalize_label(key)
                table.set_string(header_rows + row, 0, label)
            found = index.get(key)
            if found is None:
                notes.append(f"Token {key} not in hash table.\n")
            else:
                raw = tok[1 + tok_offset] if len(tok) > 1 + tok_offset else "0"
                value = float(_atol(raw))
                if not compat:
                    multiplier = 1.0
                    if len(tok) < 4:
                        multiplier = options.page_size
                    elif tok[2].startswith("HugePages"):
                        try:
                            exact = hugepages_bytes(node, tok[2], options.sys_root)
                        except FileNotFoundError as exc:
                            notes.append(f"invalid path: {exc.filename}\n")
                            exact = 0.0
                        except ValueError:
                            exact = 0.0
                        if exact > 0:
                            value = exact
                        else:
                            multiplier = options.huge_page_size
                    elif len(tok) > 4 and tok[4].startswith("kB"):
                        multiplier = KILOBYTE
                    value = value * multiplier / MEGABYTE
                table.set_double(header_rows + found, col, value)
                table.add_double(header_rows + found, total_col, value)
            row += 1

    if options.compress_display:
        for col in range(header_cols + num_nodes + 1):
            table.auto_set_col_width(col, 4, 16)
    if options.sort_table:
        sort_col = _sort_col(options, nodes, header_cols, total_col)
        table.sort_rows_descending(header_rows, header_rows + len(first_lines) - 1, sort_col)
    rendered = table.render(
        _width(options), False, False, options.show_zero_data, options.show_zero_data
    )
    return "".join(notes) + rendered


def _category(word: str) -> Optional[int]:
    for ix, prefix in enumerate(_CATEGORY_PREFIXES):
        if word.startswith(prefix):
            return ix
    return None


def process_report(options: Options, nodes: Sequence[int], pids: Sequence[int]) -> str:
    """Tabulate per-node memory of the given processes from their numa_maps.

    Raises ValueError on a malformed node entry or an unknown node, and
    OSError if an opened numa_maps file cannot be read.
    """
    nodes = list(nodes)
    pids = list(pids)
    num_nodes = len(nodes)
    headers = node_headers(nodes, False)
    header_rows = 2
    header_cols = 1
    show_sub = options.verbose or len(pids) == 1
    data_rows = len(PROCESS_LABELS) if show_sub else len(pids)

    table = Table(header_rows, header_cols, data_rows + 2, num_nodes + 1)
    total_col = header_cols + num_nodes
    total_row = header_rows + data_rows + 1
    out: list[str] = []

    table.set_string(total_row, 0, "Total")
    if show_sub:
        for row, label in enumerate(PROCESS_LABELS):
            table.set_string(header_rows + row, 0, label)
    else:
        table.set_string(0, 0, "PID")
        table.set_repchar(1, 0, "-")
        out.append("\nPer-node process memory usage (in MBs)\n")
    table.set_col_width(0, 16)
    table.set_col_justification(0, Justify.LEFT)
    for node_ix in range(num_nodes + 1):
        col = header_cols + node_ix
        table.set_string(0, col, headers[node_ix])
        table.set_repchar(1, col, "-")
        table.set_col_width(col, 16)
        table.set_col_decimal_places(col, 0 if options.compress_display else 2)
        table.set_col_justification(col, Justify.RIGHT)
    table.zero_data()

    for pid_ix, pid in enumerate(pids):
        name = command_name_for_pid(pid, options.proc_root)
        shown_name = "(null)" if name is None else name
        if show_sub:
            out.append(f"\nPer-node process memory usage (in MBs) for PID {pid} ({shown_name})\n")
            if pid_ix > 0:
                table.zero_data()
        else:
            table.set_string(header_rows + pid_ix, 0, f"{pid} ({shown_name})"[:63])

        path = Path(options.proc_root) / str(pid) / "numa_maps"
        try:
            handle = open(path, encoding="ascii", errors="replace")
        except OSError as exc:
            print(f"Can't read /proc/{pid}/numa_maps: {exc.strerror}", file=sys.stderr)
            continue
        with handle:
            try:
                text = handle.read()
            except OSError as exc:
                raise OSError(exc.errno, f"Can't read /proc/{pid}/numa_maps") from exc

        for line in text.splitlines():
            category = PROCESS_PRIVATE_INDEX
            vm_pagesz = 0.0
            at = line.find(VM_PGSZ_STR)
            if at >= 0:
                vm_pagesz = float(_atol(line[at + len(VM_PGSZ_STR):])) * KILOBYTE
            for word in line.split():
                if category == PROCESS_PRIVATE_INDEX:
                    found = _category(word)
                    if found is not None:
                        category = found
                if not word.startswith("N"):
                    continue
                match = _NODE_ENTRY.match(word)
                if match is None:
                    raise ValueError(f"node value parse error: {word!r}")
                node_num = int(match.group(1) or 0)
                pages = float(int(match.group(2) or 0))
                if not vm_pagesz:
                    vm_pagesz = (
                        options.huge_page_size
                        if category == PROCESS_HUGE_INDEX
                        else options.page_size
                    )
                value = pages * vm_pagesz / MEGABYTE
                row = header_rows + (category if show_sub else pid_ix)
                try:
                    col = header_cols + nodes.index(node_num)
                except ValueError:
                    raise ValueError(f"unknown node {node_num} in {path}") from None
                table.add_double(row, col, value)
                table.add_double(row, total_col, value)
                table.add_double(total_row, col, value)
                table.add_double(total_row, total_col, value)

        if show_sub or pid_ix + 1 == len(pids):
            if options.compress_display:
                for col in range(header_cols + num_nodes + 1):
                    table.auto_set_col_width(col, 4, 16)
            else:
                table.auto_set_col_width(0, 16, 24)
            table.set_row_always_show(total_row - 1)
            for col in range(header_cols + num_nodes + 1):
                table.set_repchar(total_row - 1, col, "-")
            if options.sort_table:
                sort_col = _sort_col(options, nodes, header_cols, total_col)
                table.sort_rows_descending(header_rows, header_rows + data_rows - 1, sort_col)
            out.append(
                table.render(
                    _width(options), False, False, options.show_zero_data, options.show_zero_data
                )
            )
    return "".join(out)


def _version() -> str:
    try:
        return metadata.version("numatools")
    except metadata.PackageNotFoundError:
        return "unknown"


def _resolve_pids(options: Options) -> list[int]:
    pids: list[int] = []
    for spec in options.pid_specs:
        if all_digits(spec):
            pids.append(int(spec) if spec else 0)
            continue
        found = find_pids_by_pattern(spec, options.proc_root)
        if not found:
            print(f'Found no processes containing pattern: "{spec}"')
        pids.extend(found)
    return sorted(set(pids))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the numastat command and return its exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        options = parse_args(args)
    except _UsageError:
        sys.stderr.write(_USAGE.format(prog=PROG_NAME))
        return EXIT_FAILURE
    if options.show_version:
        print(f"{PROG_NAME} version: {_version()}")
        return EXIT_SUCCESS

    options.screen_width = detect_screen_width()
    pids = _resolve_pids(options)

    try:
        nodes = discover_nodes(options.sys_root)
    except OSError as exc:
        what = (
            "sysfs not mounted or system not NUMA aware"
            if options.compatibility_mode
            else "Couldn't open /sys/devices/system/node"
        )
        print(f"{what}: {exc.strerror}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        if options.compatibility_mode:
            sys.stdout.write(system_file_report(options, nodes, "numastat", 0))
            return EXIT_SUCCESS
        try:
            options.huge_page_size = huge_page_size_bytes(options.proc_root)
        except OSError as exc:
            print(f"Can't open /proc/meminfo: {exc.strerror}", file=sys.stderr)
            return EXIT_FAILURE
        if pids:
            sys.stdout.write(process_report(options, nodes, pids))
        if options.show_system_info:
            sys.stdout.write("\nPer-node system memory usage (in MBs):\n")
            sys.stdout.write(system_file_report(options, nodes, "meminfo", 2))
        if options.show_numastat_info or (not pids and not options.show_system_info):
            sys.stdout.write("\nPer-node numastat info (in MBs):\n")
            sys.stdout.write(system_file_report(options, nodes, "numastat", 0))
    except OSError as exc:
        print(f"{PROG_NAME}: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except ValueError as exc:
        print(f"{PROG_NAME}: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())