import struct

import pytest

from dccnet.auth_protocol import (
    ProtocolError,
    Sas,
    ServerError,
    encode_gtr_request,
    encode_gtv_request,
    encode_itr_request,
    encode_itv_request,
    error_message,
    group_token_request,
    group_token_validate,
    individual_token_request,
    individual_token_validate,
    send_receive,
)

TOKEN = "a" * 64
SAS1 = "ifs4:1:" + "b" * 64
SAS2 = "user2:42:" + "c" * 64


class FakeSocket:
    def __init__(self, responses):
        self.responses = list(responses)
        self.sent = []

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def recv(self, size):
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(self.sent[-1])
        return item[:size]


def test_error_messages_come_from_codes():
    assert error_message(1) == "Error: Request sent with an unknown type"
    assert error_message(4) == "Error: A SAS in the request is invalid"
    assert error_message(99) == "Error: Unknown error happened"


def test_server_error_carries_code_and_message():
    err = ServerError(3)
    assert err.code == 3
    assert str(err) == "Error: Request fields error"


def test_sas_parse_fields():
    sas = Sas.parse(SAS1)
    assert sas == Sas("ifs4", 1, "b" * 64)
    assert str(sas) == SAS1


def test_sas_parse_negative_nonce_wraps():
    assert Sas.parse("x:-1:" + TOKEN).nonce == 0xFFFFFFFF


@pytest.mark.parametrize("text", ["abcdefghijklm:1:tok", ":1:tok", "id:x:tok", "id:1:", "id1tok"])
def test_sas_parse_rejects_malformed(text):
    with pytest.raises(ProtocolError):
        Sas.parse(text)


def test_sas_encode_decode_round_trip():
    sas = Sas.parse(SAS2)
    raw = sas.encode()
    assert len(raw) == 80
    assert Sas.decode(raw) == sas


def test_sas_decode_trims_trailing_spaces_but_keeps_first_char():
    tail = struct.pack("!I", 5) + TOKEN.encode()
    assert Sas.decode(b"ab" + b" " * 10 + tail).ident == "ab"
    assert Sas.decode(b" " * 12 + tail).ident == " "


def test_sas_decode_wrong_size():
    with pytest.raises(ProtocolError):
        Sas.decode(b"short")


def test_encode_itr_request_wire_bytes():
    assert encode_itr_request("ifs4", 1) == b"\x00\x01ifs4" + b" " * 8 + b"\x00\x00\x00\x01"


def test_encode_itr_request_rejects_long_id():
    with pytest.raises(ProtocolError):
        encode_itr_request("x" * 13, 1)


def test_encode_itv_request_layout():
    raw = encode_itv_request(SAS1)
    assert raw[:2] == b"\x00\x03"
    assert raw[2:] == Sas.parse(SAS1).encode()


def test_encode_gtr_request_layout():
    raw = encode_gtr_request([SAS1, SAS2])
    assert raw[:4] == b"\x00\x05\x00\x02"
    assert len(raw) == 4 + 2 * 80
    assert raw[4:84] == Sas.parse(SAS1).encode()
    assert raw[84:] == Sas.parse(SAS2).encode()


def test_encode_gtv_request_layout():
    gas = f"{SAS1}+{SAS2}+{TOKEN}"
    raw = encode_gtv_request(gas)
    assert raw[:4] == b"\x00\x07\x00\x02"
    assert len(raw) == 4 + 2 * 80 + 64
    assert raw[84:164] == Sas.parse(SAS2).encode()
    assert raw[164:] == TOKEN.encode()


def test_encode_gtv_request_missing_token():
    with pytest.raises(ProtocolError):
        encode_gtv_request(SAS1 + "+")


def test_send_receive_raises_server_error():
    sock = FakeSocket([b"\x00\x00\x00\x02"])
    with pytest.raises(ServerError) as info:
        send_receive(sock, b"req", 10)
    assert info.value.code == 2


def test_send_receive_retries_after_timeout():
    sock = FakeSocket([TimeoutError(), b"", b"x" * 10])
    assert send_receive(sock, b"req", 10) == b"x" * 10
    assert sock.sent == [b"req"] * 3


def test_send_receive_gives_up():
    sock = FakeSocket([TimeoutError()] * 6)
    with pytest.raises(TimeoutError):
        send_receive(sock, b"req", 10, attempts=6)
    assert len(sock.sent) == 6


def test_individual_token_request():
    sock = FakeSocket([lambda req: b"\x00\x02" + req[2:] + TOKEN.encode()])
    assert individual_token_request(sock, "ifs4", 7) == "ifs4:7:" + TOKEN
    assert sock.sent[0] == encode_itr_request("ifs4", 7)


def test_individual_token_request_wrong_type():
    sock = FakeSocket([lambda req: b"\x00\x09" + req[2:] + TOKEN.encode()])
    with pytest.raises(ProtocolError):
        individual_token_request(sock, "ifs4", 7)


@pytest.mark.parametrize("status,expected", [(0, True), (1, False)])
def test_individual_token_validate(status, expected):
    sock = FakeSocket([lambda req: b"\x00\x04" + req[2:] + bytes([status])])
    assert individual_token_validate(sock, SAS1) is expected


def test_individual_token_validate_propagates_server_error():
    sock = FakeSocket([b"\x00\x00\x00\x04"])
    with pytest.raises(ServerError):
        individual_token_validate(sock, SAS1)


def test_group_token_request():
    sock = FakeSocket([lambda req: b"\x00\x06" + req[2:] + b"g" * 64])
    result = group_token_request(sock, [SAS1, SAS2])
    assert result == f"{SAS1}+{SAS2}+" + "g" * 64


@pytest.mark.parametrize("status,expected", [(0, True), (1, False), (0xFF, True)])
def test_group_token_validate(status, expected):
    gas = f"{SAS1}+{TOKEN}"
    sock = FakeSocket([lambda req: b"\x00\x08" + req[2:] + bytes([status])])
    assert group_token_validate(sock, gas) is expected
    assert sock.sent[0] == encode_gtv_request(gas)