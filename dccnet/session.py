"""Opening DCCNET links and running their loops side by side."""

from __future__ import annotations

import contextlib
import socket
import threading
from functools import partial
from typing import BinaryIO, Callable, TextIO

from dccnet.addresses import parse_addr, server_addr
from dccnet.controller import MessageController
from dccnet.logs import get_logger
from dccnet.operations import (
    ResetReceived,
    print_loop,
    receive_loop,
    send_md5_loop,
    send_xfer_loop,
)

LISTEN_BACKLOG = 10

_log = get_logger("session")


def init_server(protocol: str, port: str) -> socket.socket:
    """Return a TCP socket listening on every address of ``protocol`` (``v4``/``v6``)."""
    _log.info("init_server(): start")
    family, address = server_addr(protocol, port)
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.bind(address)
        sock.listen(LISTEN_BACKLOG)
    except OSError:
        sock.close()
        raise
    _log.info("init_server(): complete")
    return sock


def connect_client(addr: str, port: str) -> socket.socket:
    """Return a TCP socket connected to the literal address ``addr``."""
    _log.info("connect_client(): start")
    family, address = parse_addr(addr, port)
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    _log.info("connect_client(): complete")
    return sock


def _receive(sock: socket.socket, controller: MessageController) -> None:
    try:
        receive_loop(sock, controller)
    except ResetReceived:
        # Make the other loops fail fast instead of waiting out their retries.
        with contextlib.suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)
        raise


def _run_together(*tasks: Callable[[], object]) -> list[object]:
    """Run ``tasks`` in threads, wait for all, and return their results.

    A reset from the peer is re-raised in preference to any other error.
    """
    results: list[object] = [None] * len(tasks)
    errors: list[BaseException] = []

    def run(index: int, task: Callable[[], object]) -> None:
        try:
            results[index] = task()
        except BaseException as exc:  # noqa: BLE001 - handed back to the caller
            errors.append(exc)

    threads = [
        threading.Thread(target=run, args=(index, task), daemon=True)
        for index, task in enumerate(tasks)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    reset = next((exc for exc in errors if isinstance(exc, ResetReceived)), None)
    if reset is not None:
        raise reset
    if errors:
        raise errors[0]
    return results


def _xfer(sock: socket.socket, source: BinaryIO, output: BinaryIO) -> int:
    controller = MessageController()
    _, _, total = _run_together(
        partial(send_xfer_loop, sock, controller, source),
        partial(_receive, sock, controller),
        partial(print_loop, controller, output),
    )
    return int(total)


def server_actions(sock: socket.socket, source: BinaryIO, output: BinaryIO) -> int:
    """Accept one client on the listening ``sock`` and exchange files with it.

    Returns the bytes received.
    """
    _log.info("server_actions(): start")
    while True:
        _log.info("server_actions(): waiting for connection...")
        try:
            conn, _ = sock.accept()
        except (InterruptedError, ConnectionError):
            continue
        break
    _log.info("server_actions(): client connected")
    with conn:
        total = _xfer(conn, source, output)
    _log.info("server_actions(): complete")
    return total


def client_md5_actions(sock: socket.socket, gas: str, output: TextIO) -> list[str]:
    """Authenticate with ``gas`` and answer every received line with its MD5.

    Returns the hashes sent.
    """
    _log.info("client_md5_actions(): start")
    # This side never sends data of its own, so it has nothing to end.
    controller = MessageController(sent_end=True)
    hashes, _ = _run_together(
        partial(send_md5_loop, sock, controller, gas, output),
        partial(_receive, sock, controller),
    )
    _log.info("client_md5_actions(): complete")
    return list(hashes or [])


def client_xfer_actions(sock: socket.socket, source: BinaryIO, output: BinaryIO) -> int:
    """Exchange files with a server, then close ``sock``; return the bytes received."""
    _log.info("client_xfer_actions(): start")
    try:
        total = _xfer(sock, source, output)
    finally:
        sock.close()
    _log.info("client_xfer_actions(): complete")
    return total