"""Client side of the UDP token authentication protocol.

Requests and responses are fixed-size big-endian messages.  A SAS
(single authentication string) has the text form ``<id>:<nonce>:<token>``;
a GAS (group authentication string) joins several SAS with ``+`` and ends
with the group token.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import Iterable, Union

from dccnet.logs import get_logger

TYPE_SIZE = 2
ID_SIZE = 12
NONCE_SIZE = 4
TOKEN_SIZE = 64
STATUS_SIZE = 1
SAS_COUNT_SIZE = 2
SAS_SIZE = 80
ERROR_RESPONSE_SIZE = 4
MAX_ATTEMPTS = 6

ITR_REQUEST = 1
ITR_RESPONSE = 2
ITV_REQUEST = 3
ITV_RESPONSE = 4
GTR_REQUEST = 5
GTR_RESPONSE = 6
GTV_REQUEST = 7
GTV_RESPONSE = 8

INVALID_MESSAGE_CODE = 1
INCORRECT_MESSAGE_LENGTH = 2
INVALID_PARAMETER = 3
INVALID_SINGLE_TOKEN = 4
ASCII_DECODE_ERROR = 5

_ERROR_MESSAGES = {
    INVALID_MESSAGE_CODE: "Error: Request sent with an unknown type",
    INCORRECT_MESSAGE_LENGTH: "Error: Request size is incompatible with the request type",
    INVALID_PARAMETER: "Error: Request fields error",
    INVALID_SINGLE_TOKEN: "Error: A SAS in the request is invalid",
    ASCII_DECODE_ERROR: "Error: Either Id or Token have invalid characters",
}
_UNKNOWN_ERROR = "Error: Unknown error happened"

_SAS_PATTERN = re.compile(r"([^:]{1,12}):\s*([+-]?\d+):\s*(\S{1,64})", re.ASCII)
_C_SPACE = b" \t\n\v\f\r"
_log = get_logger("auth")


def error_message(code: int) -> str:
    """Return the text describing a server error code."""
    return _ERROR_MESSAGES.get(code, _UNKNOWN_ERROR)


class ServerError(Exception):
    """The server answered with an error message."""

    def __init__(self, code: int) -> None:
        self.code = code
        self.message = error_message(code)
        super().__init__(self.message)


class ProtocolError(ValueError):
    """A request could not be built or a response could not be understood."""


def _trim_field(raw: bytes) -> str:
    # Trailing whitespace goes, but the first byte is always kept; the
    # text then ends at the first NUL byte.
    trimmed = raw[:1] + raw[1:].rstrip(_C_SPACE)
    return trimmed.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _encode_id(ident: str) -> bytes:
    raw = ident.encode("utf-8")
    if len(raw) > ID_SIZE:
        raise ProtocolError(f"id longer than {ID_SIZE} bytes: {ident!r}")
    return raw.ljust(ID_SIZE, b" ")


def _encode_token(text: str) -> bytes:
    return text.encode("utf-8")[:TOKEN_SIZE].ljust(TOKEN_SIZE, b"\0")


def _nul_terminated(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Sas:
    """A single authentication string: id, nonce and token."""

    ident: str
    nonce: int
    token: str

    def __str__(self) -> str:
        return f"{self.ident}:{self.nonce}:{self.token}"

    @classmethod
    def parse(cls, text: str) -> Sas:
        """Parse ``<id>:<nonce>:<token>``; text after the token is ignored."""
        match = _SAS_PATTERN.match(text)
        if match is None:
            raise ProtocolError(f"cannot parse SAS: {text!r}")
        ident, nonce, tail = match.groups()
        return cls(ident, int(nonce) & 0xFFFFFFFF, tail)

    def encode(self) -> bytes:
        """Return the 80-byte wire form."""
        return (
            _encode_id(self.ident)
            + struct.pack("!I", self.nonce & 0xFFFFFFFF)
            + _encode_token(self.token)
        )

    @classmethod
    def decode(cls, raw: bytes) -> Sas:
        """Read a SAS from its 80-byte wire form."""
        raw = bytes(raw)
        if len(raw) != SAS_SIZE:
            raise ProtocolError(f"SAS must be {SAS_SIZE} bytes, got {len(raw)}")
        ident = _trim_field(raw[:ID_SIZE])
        (nonce,) = struct.unpack_from("!I", raw, ID_SIZE)
        return cls(ident, nonce, _nul_terminated(raw[ID_SIZE + NONCE_SIZE :]))


SasLike = Union[Sas, str]


def _as_sas(sas: SasLike) -> Sas:
    return sas if isinstance(sas, Sas) else Sas.parse(sas)


def _header(kind: int) -> bytes:
    return struct.pack("!H", kind)


def encode_itr_request(ident: str, nonce: int) -> bytes:
    """Build an individual token request."""
    return _header(ITR_REQUEST) + _encode_id(ident) + struct.pack("!I", nonce & 0xFFFFFFFF)


def encode_itv_request(sas: SasLike) -> bytes:
    """Build an individual token validation request."""
    return _header(ITV_REQUEST) + _as_sas(sas).encode()


def encode_gtr_request(sas_list: Iterable[SasLike]) -> bytes:
    """Build a group token request from a sequence of SAS."""
    items = [_as_sas(sas) for sas in sas_list]
    if len(items) > 0xFFFF:
        raise ProtocolError(f"too many SAS: {len(items)}")
    body = b"".join(sas.encode() for sas in items)
    return _header(GTR_REQUEST) + struct.pack("!H", len(items)) + body


def encode_gtv_request(gas: str) -> bytes:
    """Build a group token validation request from a GAS string."""
    count = gas.count("+")
    pieces = [piece for piece in gas.split("+") if piece]
    if len(pieces) < count + 1:
        raise ProtocolError(f"malformed GAS: {gas!r}")
    if count > 0xFFFF:
        raise ProtocolError(f"too many SAS: {count}")
    body = b"".join(Sas.parse(piece).encode() for piece in pieces[:count])
    return (
        _header(GTV_REQUEST)
        + struct.pack("!H", count)
        + body
        + _encode_token(pieces[count])
    )


def send_receive(sock, request: bytes, response_size: int, attempts: int = MAX_ATTEMPTS) -> bytes:
    """Send ``request`` and return the answer, retrying when none arrives.

    A four-byte answer is a server error and raises :class:`ServerError`.
    """
    for attempt in range(1, attempts + 1):
        _log.info("send_receive(): attempt %d", attempt)
        sent = sock.send(request)
        if sent != len(request):
            raise ProtocolError("message send failure")
        _log.info("send_receive(): %d bytes sent successfully", sent)
        try:
            response = sock.recv(response_size)
        except OSError:
            response = b""
        if response:
            if len(response) == ERROR_RESPONSE_SIZE:
                (code,) = struct.unpack_from("!H", response, TYPE_SIZE)
                _log.error("send_receive(): got response error")
                raise ServerError(code)
            _log.info("send_receive(): %d bytes received successfully", len(response))
            return bytes(response)
        _log.warning("send_receive(): no response yet, retry...")
    _log.error("send_receive(): no response from server")
    raise TimeoutError("no response from server")


def _check_response(response: bytes, expected_type: int, min_size: int) -> None:
    if len(response) < TYPE_SIZE:
        raise ProtocolError("response too short")
    (kind,) = struct.unpack_from("!H", response)
    if kind != expected_type:
        raise ProtocolError(f"invalid response type {kind}")
    if len(response) < min_size:
        raise ProtocolError(f"response too short: {len(response)} < {min_size}")


def individual_token_request(sock, ident: str, nonce: int) -> str:
    """Ask for an individual token and return the resulting SAS text."""
    request = encode_itr_request(ident, nonce)
    size = len(request) + TOKEN_SIZE
    response = send_receive(sock, request, size)
    _check_response(response, ITR_RESPONSE, size)
    sas = Sas.decode(response[TYPE_SIZE : TYPE_SIZE + SAS_SIZE])
    return str(Sas(sas.ident, nonce & 0xFFFFFFFF, sas.token))


def individual_token_validate(sock, sas: SasLike) -> bool:
    """Return True when the server accepts the SAS."""
    request = encode_itv_request(sas)
    size = len(request) + STATUS_SIZE
    response = send_receive(sock, request, size)
    _check_response(response, ITV_RESPONSE, size)
    valid = response[len(request)] == 0
    if not valid:
        _log.warning("individual_token_validate(): invalid SAS")
    return valid


def group_token_request(sock, sas_list: Iterable[SasLike]) -> str:
    """Ask for a group token and return the resulting GAS text."""
    items = [_as_sas(sas) for sas in sas_list]
    request = encode_gtr_request(items)
    size = len(request) + TOKEN_SIZE
    response = send_receive(sock, request, size)
    _check_response(response, GTR_RESPONSE, size)
    start = TYPE_SIZE + SAS_COUNT_SIZE
    parts = [
        str(Sas.decode(response[offset : offset + SAS_SIZE]))
        for offset in range(start, start + len(items) * SAS_SIZE, SAS_SIZE)
    ]
    tail_start = start + len(items) * SAS_SIZE
    parts.append(_nul_terminated(response[tail_start : tail_start + TOKEN_SIZE]))
    return "+".join(parts)


def group_token_validate(sock, gas: str) -> bool:
    """Return True when the server accepts the GAS."""
    request = encode_gtv_request(gas)
    size = len(request) + STATUS_SIZE
    response = send_receive(sock, request, size)
    _check_response(response, GTV_RESPONSE, size)
    (status,) = struct.unpack_from("!b", response, len(request))
    valid = status <= 0
    if not valid:
        _log.warning("group_token_validate(): invalid GAS")
    return valid