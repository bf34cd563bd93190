"""NUMA memory statistics, policy name helpers, netlink messages and a memory bandwidth benchmark."""

__version__ = "0.1.0"
__all__ = ["policy", "stream", "rtnetlink", "sysfs", "table", "sources", "numastat"]