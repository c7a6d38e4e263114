"""Parsing of host, port and listening addresses."""

from __future__ import annotations

import re
import socket

_MAX_HOST_PORT_LENGTH = 127
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class AddressError(ValueError):
    """Raised when an address or port cannot be parsed."""


def parse_port(port: str | None) -> int:
    """Parse a port the way ``atoi`` would, truncated to 16 bits.

    Leading whitespace and a sign are accepted, trailing garbage is ignored.
    A port that ends up as zero is rejected.
    """
    if port is None:
        raise AddressError("missing port")
    match = _LEADING_INT.match(port)
    value = int(match.group(1)) & 0xFFFF if match else 0
    if value == 0:
        raise AddressError(f"invalid port: {port!r}")
    return value


def parse_addr(addr: str | None, port: str | None) -> tuple[int, tuple]:
    """Turn a literal IPv4 or IPv6 address and a port into ``(family, sockaddr)``."""
    if addr is None or port is None:
        raise AddressError("missing address or port")
    number = parse_port(port)
    try:
        socket.inet_pton(socket.AF_INET, addr)
    except (OSError, ValueError):
        pass
    else:
        return socket.AF_INET, (addr, number)
    try:
        socket.inet_pton(socket.AF_INET6, addr)
    except (OSError, ValueError):
        pass
    else:
        return socket.AF_INET6, (addr, number, 0, 0)
    raise AddressError(f"invalid address: {addr!r}")


def server_addr(protocol: str | None, port: str | None) -> tuple[int, tuple]:
    """Return the wildcard listening address for ``"v4"`` or ``"v6"``."""
    if protocol is None or port is None:
        raise AddressError("missing protocol or port")
    number = parse_port(port)
    if protocol == "v4":
        return socket.AF_INET, ("0.0.0.0", number)
    if protocol == "v6":
        return socket.AF_INET6, ("::", number, 0, 0)
    raise AddressError(f"unknown protocol: {protocol!r}")


def split_host_port(text: str) -> tuple[str, str]:
    """Split ``<IP>:<PORT>`` on its last colon.

    Input longer than 127 characters is truncated first.
    """
    text = text[:_MAX_HOST_PORT_LENGTH]
    host, sep, port = text.rpartition(":")
    if not sep:
        raise AddressError(f"expected <IP>:<PORT>, got {text!r}")
    return host, port