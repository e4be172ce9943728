from __future__ import annotations

import socket
import threading

import pytest

from calcproto.constants import MSG_OK
from calcproto.message import AssignmentRecord, ControlMessage, Encoding, Transport
from calcproto.net import SocketChannelFactory
from calcproto.selector import TransportMode, negotiate
from calcproto.session import SessionConfig


def _recv_line(conn: socket.socket) -> bytes:
    buf = b""
    while not buf.endswith(b"\n"):
        chunk = conn.recv(1024)
        if not chunk:
            break
        buf += chunk
    return buf


@pytest.fixture
def tcp_text_server():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    srv.settimeout(5.0)
    seen: dict[str, bytes] = {}

    def serve():
        conn, _ = srv.accept()
        with conn:
            conn.settimeout(5.0)
            conn.sendall(b"TEXT TCP 1.1\nBINARY TCP 1.1\n\n")
            seen["accept"] = _recv_line(conn)
            conn.sendall(b"add 5 3\n")
            seen["result"] = _recv_line(conn)
            conn.sendall(b"OK\n" if seen["result"] == b"8\n" else b"ERROR\n")

    t = threading.Thread(target=serve, daemon=True)
    t.start()
    try:
        yield srv.getsockname()[1], seen
    finally:
        t.join(timeout=5.0)
        srv.close()


def test_tcp_text_loopback(tcp_text_server):
    port, seen = tcp_text_server
    out = negotiate(TransportMode.TCP, Encoding.TEXT, SocketChannelFactory("127.0.0.1", port))
    assert out.accepted
    assert out.result == 8
    assert seen == {"accept": b"TEXT TCP 1.1 OK\n", "result": b"8\n"}


def test_udp_binary_loopback():
    srv = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    srv.bind(("127.0.0.1", 0))
    srv.settimeout(5.0)
    seen: dict[str, bytes] = {}

    def serve():
        hello, addr = srv.recvfrom(1024)
        seen["hello"] = hello
        srv.sendto(AssignmentRecord.make(id=5, arith=3, value1=-4, value2=3).to_bytes(), addr)
        reply, addr = srv.recvfrom(1024)
        seen["reply"] = reply
        srv.sendto(ControlMessage.make(MSG_OK).to_bytes(), addr)

    t = threading.Thread(target=serve, daemon=True)
    t.start()
    try:
        factory = SocketChannelFactory("127.0.0.1", srv.getsockname()[1])
        out = negotiate(TransportMode.UDP, Encoding.BINARY, factory)
    finally:
        t.join(timeout=5.0)
        srv.close()

    assert out.accepted
    assert out.result == -12
    assert seen["hello"] == ControlMessage.hello().to_bytes()
    assert AssignmentRecord.from_bytes(seen["reply"]).result == -12


def test_any_falls_back_when_udp_is_silent(tcp_text_server):
    port, _ = tcp_text_server
    silent = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        silent.bind(("127.0.0.1", port))
    except OSError:
        silent.close()
        pytest.skip("UDP port already in use")
    try:
        config = SessionConfig(encoding=Encoding.TEXT, response_timeout=0.2)
        out = negotiate(TransportMode.ANY, Encoding.TEXT, SocketChannelFactory("127.0.0.1", port), config)
    finally:
        silent.close()
    assert out.accepted
    assert out.transport is Transport.STREAM


def test_connect_refused_is_reported():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    out = negotiate(TransportMode.TCP, Encoding.TEXT, SocketChannelFactory("127.0.0.1", port))
    assert not out.accepted
    assert out.cause.value == "io-error"
