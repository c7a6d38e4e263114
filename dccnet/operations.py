"""The loops that run a DCCNET link: sending, receiving and output."""

from __future__ import annotations

import socket
import sys
from typing import BinaryIO, TextIO

from dccnet.controller import MessageController
from dccnet.frame import (
    MAX_ATTEMPTS,
    MAX_DATA_BYTES,
    Flag,
    Frame,
    FrameError,
    md5_hex,
    receive_frame,
    send_frame,
)
from dccnet.logs import get_logger

ACK_TIMEOUT = 1.0

_log = get_logger("operations")


class ResetReceived(ConnectionError):
    """The peer sent a reset frame."""


def send_ack(sock: socket.socket, frame_id: int) -> None:
    """Send an acknowledgement for ``frame_id``."""
    send_frame(sock, Frame(frame_id, Flag.ACK))


def send_end(sock: socket.socket, frame_id: int) -> None:
    """Send an end frame with ``frame_id``."""
    send_frame(sock, Frame(frame_id, Flag.END))


def send_data_wait_ack(
    sock: socket.socket,
    controller: MessageController,
    data: bytes | str,
    end_char: bool = False,
) -> None:
    """Send a data frame and retransmit it until it is acknowledged.

    With ``end_char`` a newline is appended to the data.  Raises
    :class:`TimeoutError` when every attempt went unacknowledged.
    """
    payload = data.encode() if isinstance(data, str) else bytes(data)
    if end_char:
        payload += b"\n"
    with controller.lock:
        frame_id = controller.current_id
        controller.waiting_ack = True
        controller.last_sent_id = frame_id
    frame = Frame(frame_id, Flag.NONE, payload)
    _log.info("send_data_wait_ack(id = %d): start", frame_id)

    for attempt in range(1, MAX_ATTEMPTS + 1):
        with controller.lock:
            if not controller.waiting_ack:
                return
        _log.info("send_data_wait_ack(id = %d): attempt %d", frame_id, attempt)
        try:
            send_frame(sock, frame)
        except OSError as exc:
            _log.warning("send_data_wait_ack(id = %d): send failed (%s), retry...", frame_id, exc)
            continue
        with controller.ack_cond:
            acked = controller.ack_cond.wait_for(
                lambda: not controller.waiting_ack, ACK_TIMEOUT
            )
        if acked:
            _log.info("send_data_wait_ack(id = %d): complete due ack received", frame_id)
            return
        _log.warning("send_data_wait_ack(id = %d): wait ack timeout, retransmit...", frame_id)

    _log.error("send_data_wait_ack(id = %d): complete with failure", frame_id)
    raise TimeoutError(f"no acknowledgement for frame {frame_id}")


def _handle_ack(controller: MessageController, frame: Frame) -> None:
    with controller.lock:
        if controller.waiting_ack and frame.id == controller.last_sent_id:
            controller.waiting_ack = False
            controller.current_id = 1 - controller.current_id
            controller.ack_cond.notify_all()
        _log.info(
            "receive_loop(): received ack id %d while current id %d",
            frame.id,
            controller.last_sent_id,
        )


def _handle_data(controller: MessageController, frame: Frame) -> None:
    with controller.lock:
        if frame.id == controller.last_received_id:
            _log.info("receive_loop(): received duplicated frame id %d", frame.id)
            return
        controller.last_received_id = frame.id
        controller.new_data_available = True
        if frame.flags == Flag.END:
            _log.info("receive_loop(): received new end frame id %d", frame.id)
            controller.received_end = True
        else:
            _log.info("receive_loop(): received new data frame id %d", frame.id)
            controller.set_last_received_data(frame.data)
        controller.data_cond.notify_all()


def receive_loop(sock: socket.socket, controller: MessageController) -> None:
    """Receive frames until both sides have ended or the link goes quiet.

    Data and end frames are acknowledged, duplicates included.  A reset
    frame raises :class:`ResetReceived`.
    """
    _log.info("receive_loop(): start")
    attempts = 0
    try:
        while attempts < MAX_ATTEMPTS:
            attempts += 1
            with controller.lock:
                if controller.received_end and controller.sent_end:
                    _log.info("receive_loop(): complete due end flag")
                    break
            try:
                frame = receive_frame(sock)
            except (FrameError, OSError) as exc:
                _log.warning("receive_loop(): receipt failed (%s), retry...", exc)
                continue
            attempts = 0
            _log.info("receive_loop(): received flag %x", int(frame.flags))

            if frame.flags == Flag.RESET:
                raise ResetReceived(f"received reset frame {frame.id}")
            if frame.flags == Flag.ACK:
                _handle_ack(controller, frame)
            elif frame.flags in (Flag.NONE, Flag.END):
                _handle_data(controller, frame)
                try:
                    send_ack(sock, frame.id)
                except OSError as exc:
                    _log.error("receive_loop(): failed to send ack id %d (%s)", frame.id, exc)
    finally:
        with controller.lock:
            controller.receiver_done = True
            controller.data_cond.notify_all()
            controller.ack_cond.notify_all()
    _log.info("receive_loop(): complete")


def _wait_for_data(controller: MessageController) -> bytes | None:
    """Wait for the next chunk; None once the peer ended or the link stopped."""
    with controller.data_cond:
        controller.data_cond.wait_for(
            lambda: controller.new_data_available
            or controller.received_end
            or controller.receiver_done
        )
        if controller.received_end or not controller.new_data_available:
            return None
        controller.new_data_available = False
        return controller.last_received_data


def send_md5_loop(
    sock: socket.socket,
    controller: MessageController,
    gas: str,
    output: TextIO,
) -> list[str]:
    """Authenticate with ``gas``, then answer every received line with its MD5.

    Each line is written to ``output``.  Returns the hashes sent.
    """
    _log.info("send_md5_loop(): start")
    send_data_wait_ack(sock, controller, gas, True)

    sent: list[str] = []
    pending = b""
    while (chunk := _wait_for_data(controller)) is not None:
        pending += chunk.split(b"\0", 1)[0]
        if not pending.endswith(b"\n"):
            continue
        for line in (piece for piece in pending.split(b"\n") if piece):
            output.write(line.decode("utf-8", errors="replace") + "\n")
            digest = md5_hex(line)
            try:
                send_data_wait_ack(sock, controller, digest, True)
            except (TimeoutError, FrameError) as exc:
                _log.error("send_md5_loop(): failed to send hash (%s)", exc)
                break
            sent.append(digest)
        pending = b""

    _log.info("send_md5_loop(): complete")
    return sent


def send_xfer_loop(
    sock: socket.socket, controller: MessageController, source: BinaryIO
) -> None:
    """Send ``source`` in frame-sized chunks, then an end frame."""
    _log.info("send_xfer_loop(): start")
    while chunk := source.read(MAX_DATA_BYTES):
        send_data_wait_ack(sock, controller, chunk, False)
    with controller.lock:
        send_end(sock, controller.current_id)
        controller.sent_end = True
    _log.info("send_xfer_loop(): complete")


def print_loop(
    controller: MessageController, output: BinaryIO, progress: TextIO | None = None
) -> int:
    """Write received data to ``output`` until the peer ends; return the byte count.

    After each chunk the running total is reported on ``progress``
    (standard output by default).
    """
    progress = sys.stdout if progress is None else progress
    total = 0
    while (chunk := _wait_for_data(controller)) is not None:
        output.write(chunk)
        total += len(chunk)
        print(f"{total} bytes received", file=progress)
    _log.info("print_loop(): complete")
    return total