# numatools

Tools for looking at how memory is spread across the NUMA nodes of a Linux
machine. The package reads `/sys/devices/system/node` and `/proc`. It is pure
Python. The benchmark needs numpy.

## Installation

```
pip install numatools
```

## The `numastat` command

```
numastat [-c] [-m] [-n] [-p <PID>|<pattern>] [-s[<node>]] [-v] [-V] [-z] [<PID>|<pattern>...]
```

- Run with no arguments, `numastat` prints the raw per-node counters from each
  node's `numastat` file, with `nodeN` column headers.
- `-m` shows system-wide memory usage per node from each node's `meminfo`, in MB.
- `-n` shows the numastat counters in MB. It is also the default report when
  options are given but no process and no `-m` is asked for.
- `-p <PID>|<pattern>` shows per-node memory for processes, read from
  `/proc/<PID>/numa_maps`. Further PIDs or patterns may follow as plain
  arguments. A pattern is matched against each process's name and command line.
  The `numastat` process itself is never matched.
- With one process, or with `-v`, the report splits memory into Huge, Heap,
  Stack and Private rows. With several processes it shows one row per process.
- `-s[<node>]` sorts the rows in descending order, by the Total column or by
  the given node.
- `-c` makes the columns as narrow as the data allows and drops the decimals.
- `-z` hides rows and columns that hold only zeros.
- `-V` prints the version of the installed package.

The output width comes from the `NUMASTAT_WIDTH` environment variable when it
is set. On a terminal it is taken from the `COLUMNS=` line printed by the
`resize` program, with 80 used when that is not available. When output is not
a terminal, lines are not folded. Tables wider than the screen are folded into
several sections.

## Library use

```python
from numatools.policy import memsize, parse_policy, policy_name, format_mask
from numatools.table import Table, Justify
from numatools.stream import StreamBenchmark

memsize("10M")                                    # 10485760
policy_name(parse_policy("interleave", "0-1"))    # "interleave"
format_mask("nodes", {0, 2})                      # "nodes: 0 2 "

bench = StreamBenchmark(24 * 1024 * 1024, verbose=False)
for result in bench.run():                        # Copy, Scale, Add, Triad
    print(result.name, result.rate)               # best rate in MB/s
```

The modules:

- `numatools.policy`: the `Policy` enum and mempolicy flag constants,
  `memsize`, `parse_policy` (raises `ValueError` on an unknown policy or a
  missing node argument), `policy_name`, `print_policies`, `format_mask` and
  `find_first`.
- `numatools.stream`: `StreamBenchmark`, which runs the Copy, Scale, Add and
  Triad kernels over three numpy arrays and returns `StreamResult` records,
  and `check_tick` for the timer granularity.
- `numatools.sysfs`: `sysfs_read` and `sysfs_node_read`, which parses a list of
  node numbers into a set and raises `NodeParseError` on bad input.
- `numatools.rtnetlink`: `NetlinkMessage` to build and parse route-netlink
  messages and their attributes, and `rtnetlink_request`, which sends one
  message on a private netlink socket and raises `NetlinkError` when the
  kernel answers with an error.
- `numatools.sources`: node discovery, node column headers, process names,
  huge page sizes and counts, pattern search over processes, and screen width.
- `numatools.table`: `Table`, which lays cells out as justified fixed-width
  text. `Table.render` returns the text.
- `numatools.numastat`: `parse_args`, `system_file_report`, `process_report`
  and `main`, the pieces behind the `numastat` command.

## What this package does not do

It reports on memory placement. It does not change it. There is no command to
run a program under a memory policy, bind it to nodes or CPUs, or migrate its
pages. `numatools.policy` only names and parses policies. Likewise the
benchmark measures bandwidth over ordinary numpy arrays. It does not place
them on particular nodes.