"""DCCNET frames: encoding, validation and socket transfer."""

from __future__ import annotations

import hashlib
import select
import socket
import struct
from dataclasses import dataclass
from enum import IntFlag

from dccnet.logs import get_logger

SYNC = 0xDCC023C2
HEADER_SIZE = 15
MAX_DATA_BYTES = 1000
MAX_ATTEMPTS = 16
SEND_TIMEOUT = 3.0
RECV_TIMEOUT = 3.0

_HEADER = struct.Struct("!IIHHHB")
_log = get_logger("frame")


class Flag(IntFlag):
    """Frame flags."""

    NONE = 0x00
    RESET = 0x20
    END = 0x40
    ACK = 0x80


class FrameError(ValueError):
    """Raised for malformed or corrupted frames."""


def checksum(data: bytes) -> int:
    """Internet checksum over ``data``, padding an odd length with a zero byte."""
    buf = bytes(data)
    if len(buf) % 2:
        buf += b"\x00"
    total = 0
    for high, low in zip(buf[0::2], buf[1::2]):
        total += (high << 8) | low
        if total > 0xFFFF:
            total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def md5_hex(text: str | bytes) -> str:
    """Lower-case hexadecimal MD5 digest of ``text``."""
    if isinstance(text, str):
        text = text.encode()
    return hashlib.md5(text).hexdigest()


@dataclass(frozen=True)
class Frame:
    """A DCCNET frame; ``data`` holds the payload exactly as sent."""

    id: int
    flags: int = Flag.NONE
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        if not 0 <= self.id <= 0xFFFF:
            raise FrameError(f"frame id out of range: {self.id}")
        if not 0 <= int(self.flags) <= 0xFF:
            raise FrameError(f"frame flags out of range: {self.flags}")
        if len(self.data) > MAX_DATA_BYTES:
            raise FrameError(f"frame data too long: {len(self.data)} bytes")

    def _pack(self, checksum_value: int) -> bytes:
        header = _HEADER.pack(
            SYNC, SYNC, checksum_value, len(self.data), self.id, int(self.flags)
        )
        return header + self.data

    def encode(self) -> bytes:
        """Return the wire bytes of the frame, checksum included."""
        return self._pack(checksum(self._pack(0)))

    @classmethod
    def decode(cls, raw: bytes) -> Frame:
        """Parse and validate a frame; bytes beyond its length are ignored."""
        raw = bytes(raw)
        if len(raw) < HEADER_SIZE:
            raise FrameError("truncated frame header")
        sync1, sync2, received, length, frame_id, flags = _HEADER.unpack_from(raw)
        if sync1 != SYNC or sync2 != SYNC:
            raise FrameError(f"invalid sync bytes {sync1:x} {sync2:x}")
        if length > MAX_DATA_BYTES:
            raise FrameError(f"invalid data size {length}")
        data = raw[HEADER_SIZE : HEADER_SIZE + length]
        if len(data) < length:
            raise FrameError("truncated frame data")
        frame = cls(frame_id, flags, data)
        expected = checksum(frame._pack(0))
        if received != expected:
            raise FrameError(f"invalid checksum {received} != {expected}")
        return frame


def send_frame(sock: socket.socket, frame: Frame, timeout: float = SEND_TIMEOUT) -> None:
    """Send a whole frame, waiting at most ``timeout`` seconds for each write."""
    payload = memoryview(frame.encode())
    _log.info("send_frame(id = %d): start", frame.id)
    sent = 0
    while sent < len(payload):
        _, writable, _ = select.select([], [sock], [], timeout)
        if not writable:
            raise TimeoutError(f"socket not ready to send frame {frame.id}")
        count = sock.send(payload[sent:])
        if count <= 0:
            raise ConnectionError(f"no bytes sent for frame {frame.id}")
        sent += count
        _log.info("send_frame(id = %d): %d bytes sent of %d", frame.id, sent, len(payload))
    _log.info("send_frame(id = %d): complete", frame.id)


def receive_frame(sock: socket.socket, timeout: float = RECV_TIMEOUT) -> Frame:
    """Receive one frame, waiting at most ``timeout`` seconds for data."""
    readable, _, _ = select.select([sock], [], [], timeout)
    if not readable:
        raise TimeoutError("socket not ready to receive")
    raw = sock.recv(HEADER_SIZE + MAX_DATA_BYTES)
    if not raw:
        raise ConnectionError("no bytes received")
    frame = Frame.decode(raw)
    _log.info("receive_frame(id = %d): complete", frame.id)
    return frame