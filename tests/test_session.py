import hashlib
import io
import socket
import threading
import time

import pytest

from dccnet.addresses import AddressError
from dccnet.frame import Flag, Frame, receive_frame, send_frame
from dccnet.operations import ResetReceived
from dccnet.session import (
    client_md5_actions,
    client_xfer_actions,
    connect_client,
    init_server,
    server_actions,
)


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


class _Peer:
    """A scripted DCCNET endpoint used to drive the client under test."""

    def __init__(self, conn):
        self.conn = conn
        self.data = []
        self.acked = set()
        self.last_id = None

    def pump(self):
        frame = receive_frame(self.conn, 1.0)
        if frame.flags == Flag.ACK:
            self.acked.add(frame.id)
        elif frame.flags == Flag.NONE:
            send_frame(self.conn, Frame(frame.id, Flag.ACK))
            if frame.id != self.last_id:
                self.last_id = frame.id
                self.data.append(frame.data)

    def wait(self, done, resend=None):
        deadline = time.monotonic() + 30
        while not done():
            if time.monotonic() > deadline:
                raise TimeoutError("peer gave up")
            try:
                self.pump()
            except TimeoutError:
                if resend is not None:
                    resend()

    def deliver(self, frame):
        time.sleep(0.05)
        self.acked.discard(frame.id)
        send_frame(self.conn, frame)

        def resend():
            if frame.id not in self.acked:
                send_frame(self.conn, frame)

        return resend


def _md5_server(listener, lines, record, errors):
    try:
        conn, _ = listener.accept()
        with conn:
            peer = _Peer(conn)
            peer.wait(lambda: len(peer.data) >= 1)
            for index, line in enumerate(lines):
                frame = Frame(index % 2, Flag.NONE, line)
                resend = peer.deliver(frame)
                peer.wait(
                    lambda: frame.id in peer.acked and len(peer.data) >= 2 + index,
                    resend,
                )
            end = Frame(len(lines) % 2, Flag.END)
            resend = peer.deliver(end)
            peer.wait(lambda: end.id in peer.acked, resend)
            record.extend(peer.data)
    except Exception as exc:
        errors.append(exc)


def _reset_server(listener, errors):
    try:
        conn, _ = listener.accept()
        with conn:
            peer = _Peer(conn)
            peer.wait(lambda: len(peer.data) >= 1)
            time.sleep(0.2)
            send_frame(conn, Frame(0, Flag.RESET))
            time.sleep(0.5)
    except Exception as exc:
        errors.append(exc)


def test_connect_client_rejects_bad_address():
    with pytest.raises(AddressError):
        connect_client("not-an-ip", "51001")


def test_connect_client_rejects_zero_port():
    with pytest.raises(AddressError):
        connect_client("127.0.0.1", "0")


def test_init_server_rejects_unknown_protocol():
    with pytest.raises(AddressError):
        init_server("v5", "51001")


def test_init_server_listens_and_accepts():
    port = _free_port()
    with init_server("v4", str(port)) as listener:
        assert listener.getsockname()[1] == port
        with connect_client("127.0.0.1", str(port)) as client:
            conn, _ = listener.accept()
            with conn:
                client.sendall(b"ping")
                assert conn.recv(16) == b"ping"


def test_files_are_exchanged_both_ways():
    server_data = b"lines from the server\nsecond line\n"
    client_data = b"lines from the client\n"
    server_out = io.BytesIO()
    client_out = io.BytesIO()
    result = {}
    errors = []

    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]

    def serve():
        try:
            result["server"] = server_actions(listener, io.BytesIO(server_data), server_out)
        except Exception as exc:
            errors.append(exc)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    with listener:
        sock = connect_client("127.0.0.1", str(port))
        client_total = client_xfer_actions(sock, io.BytesIO(client_data), client_out)
        thread.join(120)

    assert errors == []
    assert client_out.getvalue() == server_data
    assert server_out.getvalue() == client_data
    assert client_total == len(server_data)
    assert result["server"] == len(client_data)
    assert sock.fileno() == -1


def test_md5_client_hashes_every_line():
    lines = [b"hello\n", b"world\n"]
    record = []
    errors = []
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    thread = threading.Thread(
        target=_md5_server, args=(listener, lines, record, errors), daemon=True
    )
    thread.start()
    output = io.StringIO()
    with listener, connect_client("127.0.0.1", str(port)) as sock:
        hashes = client_md5_actions(sock, "group-auth", output)
        thread.join(60)

    expected = [hashlib.md5(line.rstrip(b"\n")).hexdigest() for line in lines]
    assert errors == []
    assert hashes == expected
    assert output.getvalue() == "hello\nworld\n"
    assert record[0] == b"group-auth\n"
    assert record[1:] == [digest.encode() + b"\n" for digest in expected]


def test_md5_client_raises_on_reset():
    errors = []
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    thread = threading.Thread(target=_reset_server, args=(listener, errors), daemon=True)
    thread.start()
    with listener, connect_client("127.0.0.1", str(port)) as sock:
        with pytest.raises(ResetReceived):
            client_md5_actions(sock, "group-auth", io.StringIO())
        thread.join(30)
    assert errors == []