"""Command line client for the token authentication server."""

from __future__ import annotations

import re
import socket
import sys
from dataclasses import dataclass, field

from dccnet.addresses import AddressError, parse_addr
from dccnet.auth_protocol import (
    ProtocolError,
    ServerError,
    group_token_request,
    group_token_validate,
    individual_token_request,
    individual_token_validate,
)
from dccnet.logs import LogLevel, configure

_PROG = "dccnet-auth"
_TIMEOUT = 2.0
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class _UsageError(ValueError):
    """Too few arguments to tell what was asked for."""


@dataclass
class Params:
    """Command line parameters of the authentication client."""

    addr: str
    port: str
    cmd: str
    ident: str | None = None
    nonce: int = 0
    sas: str | None = None
    gas: str | None = None
    sas_list: list[str] = field(default_factory=list)


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_args(argv: list[str]) -> Params:
    """Parse ``<addr> <port> <command> [arguments...]``."""
    if len(argv) < 3:
        raise _UsageError("too few arguments")
    params = Params(addr=argv[0], port=argv[1], cmd=argv[2])
    rest = argv[3:]
    if params.cmd == "itr":
        if len(rest) < 2:
            raise ValueError("Bad itr usage")
        params.ident = rest[0]
        params.nonce = _atoi(rest[1])
    elif params.cmd == "itv":
        if not rest:
            raise ValueError("Bad itv usage")
        params.sas = rest[0]
    elif params.cmd == "gtr":
        if not rest:
            raise ValueError("Bad gtr usage")
        count = _atoi(rest[0])
        if count < 0 or len(rest) < 1 + count:
            raise ValueError("Bad gtr usage")
        params.sas_list = list(rest[1 : 1 + count])
    elif params.cmd == "gtv":
        if not rest:
            raise ValueError("Bad gtv usage")
        params.gas = rest[0]
    else:
        raise ValueError("Invalid command")
    return params


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def _request(sock: socket.socket, params: Params) -> str | None:
    try:
        if params.cmd == "itr":
            return individual_token_request(sock, params.ident or "", params.nonce)
        return group_token_request(sock, params.sas_list)
    except ServerError as exc:
        return exc.message
    except (ProtocolError, OSError):
        return None


def _validate(sock: socket.socket, params: Params) -> str:
    try:
        if params.cmd == "itv":
            valid = individual_token_validate(sock, params.sas or "")
        else:
            valid = group_token_validate(sock, params.gas or "")
    except (ServerError, ProtocolError, OSError):
        valid = False
    return "0" if valid else "1"


def main(argv: list[str] | None = None) -> int:
    """Run one authentication command and print its result."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        params = parse_args(args)
    except _UsageError:
        print(f"usage: {_PROG} <server IP> <server port> <command>")
        print(f"example: {_PROG} 127.0.0.1 51511 itr ifs4 1")
        return 1
    except ValueError as exc:
        return _fail(str(exc))

    try:
        family, address = parse_addr(params.addr, params.port)
    except AddressError:
        return _fail("Addr parsing failure")
    try:
        sock = socket.socket(family, socket.SOCK_DGRAM)
    except OSError:
        return _fail("Socket creation failure")

    with sock:
        sock.settimeout(_TIMEOUT)
        try:
            sock.connect(address)
        except OSError:
            return _fail("Server connection failure")
        configure(LogLevel.DEBUG)
        if params.cmd in ("itr", "gtr"):
            result = _request(sock, params)
        else:
            result = _validate(sock, params)

    if result is None:
        return _fail("Internal server error")
    print(result)
    return 0