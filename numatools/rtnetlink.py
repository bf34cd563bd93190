"""Building, parsing and sending route netlink messages."""

from __future__ import annotations

import ipaddress
import os
import socket
import struct
from dataclasses import dataclass, field
from typing import Iterator, Union

AF_NETLINK = 16
NETLINK_ROUTE = 0
NLMSG_ERROR = 2
NLMSG_ALIGNTO = 4
RTA_ALIGNTO = 4

_HEADER = struct.Struct("=IHHII")
_RTA = struct.Struct("=HH")
_ERROR = struct.Struct("=i")
NLMSG_HDRLEN = _HEADER.size

Address = Union[str, bytes, int, ipaddress.IPv4Address, ipaddress.IPv6Address]


def _align(length: int, to: int = NLMSG_ALIGNTO) -> int:
    return (length + to - 1) & ~(to - 1)


class NetlinkError(OSError):
    """The kernel answered a netlink request with an error."""

    def __init__(self, errno_value: int):
        super().__init__(errno_value, os.strerror(errno_value))


@dataclass
class NetlinkMessage:
    """A netlink message: header fields plus the bytes that follow the header."""

    msg_type: int
    flags: int = 0
    seq: int = 0
    pid: int = 0
    payload: bytearray = field(default_factory=bytearray)

    def __post_init__(self):
        self.payload = bytearray(self.payload)

    @property
    def length(self) -> int:
        return NLMSG_HDRLEN + len(self.payload)

    def put_attribute(self, rta_type: int, payload: bytes) -> int:
        """Append an attribute and return the offset of its data in the message."""
        data = bytes(payload)
        self.payload += bytes(_align(self.length) - self.length)
        rta_len = _RTA.size + len(data)
        data_offset = self.length + _RTA.size
        self.payload += _RTA.pack(rta_len, rta_type) + data
        self.payload += bytes(_align(rta_len, RTA_ALIGNTO) - rta_len)
        return data_offset

    def iter_attributes(self, offset: int) -> Iterator[tuple[int, bytes]]:
        """Yield ``(type, data)`` for each attribute starting at ``offset``."""
        raw = self.to_bytes()
        pos = _align(offset)
        while len(raw) - pos >= _RTA.size:
            rta_len, rta_type = _RTA.unpack_from(raw, pos)
            if rta_len < _RTA.size or rta_len > len(raw) - pos:
                return
            yield rta_type, raw[pos + _RTA.size:pos + rta_len]
            pos += _align(rta_len, RTA_ALIGNTO)

    def put_address(self, rta_type: int, address: Address) -> int:
        """Append an IPv4 or IPv6 address attribute; ValueError for anything else."""
        if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            ip = address
        else:
            ip = ipaddress.ip_address(address)
        return self.put_attribute(rta_type, ip.packed)

    def to_bytes(self) -> bytes:
        return _HEADER.pack(self.length, self.msg_type, self.flags, self.seq, self.pid) + bytes(
            self.payload
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "NetlinkMessage":
        if len(data) < NLMSG_HDRLEN:
            raise ValueError("netlink message shorter than its header")
        length, msg_type, flags, seq, pid = _HEADER.unpack_from(data)
        if length < NLMSG_HDRLEN or length > len(data):
            raise ValueError(f"bad netlink message length {length}")
        return cls(msg_type, flags, seq, pid, bytearray(data[NLMSG_HDRLEN:length]))


def rtnetlink_request(message: NetlinkMessage, bufsize: int = 16384) -> NetlinkMessage:
    """Send ``message`` on a private route netlink socket and return the single reply.

    Raises NetlinkError if the kernel answers with a non-zero error.
    """
    with socket.socket(AF_NETLINK, socket.SOCK_RAW, NETLINK_ROUTE) as sock:
        sock.sendto(message.to_bytes(), (0, 0))
        data = sock.recv(bufsize)
    reply = NetlinkMessage.from_bytes(data)
    if reply.msg_type == NLMSG_ERROR:
        (error,) = _ERROR.unpack_from(reply.payload)
        if error:
            raise NetlinkError(-error)
    return reply