"""Command line programs: the MD5 authentication client and the file exchanger."""

from __future__ import annotations

import sys
from contextlib import ExitStack
from dataclasses import dataclass

from dccnet.addresses import AddressError, split_host_port
from dccnet.frame import MAX_DATA_BYTES, FrameError
from dccnet.logs import LogLevel, configure
from dccnet.operations import ResetReceived
from dccnet.session import (
    client_md5_actions,
    client_xfer_actions,
    connect_client,
    init_server,
    server_actions,
)

_MD5_PROG = "dccnet-md5"
_XFER_PROG = "dccnet-xfer"
_IP_VERSIONS = ("v4", "v6")


class _UsageError(ValueError):
    """The command line does not match the program's usage."""


@dataclass
class Params:
    """Command line parameters of both programs."""

    addr: str | None = None
    port: str | None = None
    gas: str | None = None
    input_file: str | None = None
    output_file: str | None = None
    server_side: bool = False
    client_side: bool = False
    ip_version: str = "v4"
    debug: bool = False


def _host_port(text: str) -> tuple[str, str]:
    try:
        return split_host_port(text)
    except AddressError as exc:
        raise _UsageError(str(exc)) from exc


def parse_args_md5(argv: list[str]) -> Params:
    """Parse ``<IP>:<PORT> <GAS> [<OUTPUT> [-d]]``."""
    if len(argv) < 2:
        raise _UsageError("too few arguments")
    addr, port = _host_port(argv[0])
    params = Params(addr=addr, port=port, gas=argv[1])
    if len(argv) >= 3:
        params.output_file = argv[2]
        params.debug = len(argv) == 4 and argv[3] == "-d"
    return params


def parse_args_xfer(argv: list[str]) -> Params:
    """Parse ``-s <PORT>|-c <IP>:<PORT> <INPUT> <OUTPUT> [v4|v6 [-d]]``."""
    if len(argv) < 4:
        raise _UsageError("too few arguments")
    mode = argv[0]
    if mode == "-s":
        params = Params(port=argv[1], server_side=True)
    elif mode == "-c":
        addr, port = _host_port(argv[1])
        params = Params(addr=addr, port=port, client_side=True)
    else:
        raise _UsageError(f"unknown mode {mode!r}")
    params.input_file = argv[2]
    params.output_file = argv[3]
    if len(argv) >= 5 and argv[4] in _IP_VERSIONS:
        params.ip_version = argv[4]
        params.debug = len(argv) == 6 and argv[5] == "-d"
    return params


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def _md5_usage() -> int:
    print(f"usage: {_MD5_PROG} <IP>:<PORT> <GAS>")
    return 1


def _xfer_usage() -> int:
    print(f"usage 1: {_XFER_PROG} -s <PORT> <INPUT> <OUTPUT>")
    print(f"usage 2: {_XFER_PROG} -c <IP>:<PORT> <INPUT> <OUTPUT>")
    return 1


def _connect(params: Params):
    try:
        return connect_client(params.addr, params.port), None
    except AddressError:
        return None, "failed to parse addr and port"
    except OSError:
        return None, "failed to connect to the server"


def md5_main(argv: list[str] | None = None) -> int:
    """Authenticate with a GAS and answer the server's lines with their MD5."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        params = parse_args_md5(args)
    except _UsageError:
        return _md5_usage()
    if params.debug:
        configure(LogLevel.DEBUG)

    with ExitStack() as stack:
        if params.output_file is None:
            output = sys.stderr
        else:
            try:
                output = stack.enter_context(
                    open(params.output_file, "w", encoding="utf-8")
                )
            except OSError:
                return _fail("output file error")

        gas = params.gas or ""
        if len(gas.encode()) + 2 > MAX_DATA_BYTES:
            return _fail("invalid gas size")

        sock, error = _connect(params)
        if sock is None:
            return _fail(error)
        with sock:
            try:
                client_md5_actions(sock, gas, output)
            except ResetReceived:
                return _fail("received reset")
            except (TimeoutError, FrameError, OSError) as exc:
                return _fail(f"transfer failure: {exc}")
    return 0


def xfer_main(argv: list[str] | None = None) -> int:
    """Exchange a file with a peer, as server (``-s``) or client (``-c``)."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        params = parse_args_xfer(args)
    except _UsageError:
        return _xfer_usage()
    if params.debug:
        configure(LogLevel.DEBUG)

    print(params.input_file)
    with ExitStack() as stack:
        try:
            source = stack.enter_context(open(params.input_file, "rb"))
        except OSError:
            return _fail("input file failure")
        try:
            output = stack.enter_context(open(params.output_file, "wb"))
        except OSError:
            return _fail("output file failure")

        try:
            if params.server_side:
                try:
                    listener = init_server(params.ip_version, params.port)
                except AddressError:
                    return _fail("server addr failure")
                except OSError as exc:
                    return _fail(f"bind failure: {exc}")
                with listener:
                    server_actions(listener, source, output)
            else:
                sock, error = _connect(params)
                if sock is None:
                    return _fail(error)
                with sock:
                    client_xfer_actions(sock, source, output)
        except ResetReceived:
            return _fail("received reset")
        except (TimeoutError, FrameError, OSError) as exc:
            return _fail(f"transfer failure: {exc}")
    return 0