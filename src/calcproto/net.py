from __future__ import annotations

import logging
import socket
from typing import Protocol

from .constants import RECV_BUFSIZE
from .errors import ConnectionClosedError
from .message import Transport

logger = logging.getLogger(__name__)


class Channel(Protocol):
    transport: Transport

    def send(self, data: bytes) -> None: ...

    def receive(self, max_bytes: int = RECV_BUFSIZE, timeout: float | None = None) -> bytes: ...

    def close(self) -> None: ...


class ChannelFactory(Protocol):
    def open(self, transport: Transport) -> Channel: ...


class _SocketChannel:
    transport: Transport

    def __init__(self, sock: socket.socket):
        self.sock = sock

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def receive(self, max_bytes: int = RECV_BUFSIZE, timeout: float | None = None) -> bytes:
        # None means block until data, close or error
        self.sock.settimeout(timeout)
        return self.sock.recv(max_bytes)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class StreamChannel(_SocketChannel):
    transport = Transport.STREAM

    @classmethod
    def connect(cls, host: str, port: int, timeout: float | None = None) -> "StreamChannel":
        sock = socket.create_connection((host, port), timeout=timeout)
        return cls(sock)

    def receive(self, max_bytes: int = RECV_BUFSIZE, timeout: float | None = None) -> bytes:
        data = super().receive(max_bytes, timeout)
        if not data:
            raise ConnectionClosedError("connection closed by peer")
        return data


class DatagramChannel(_SocketChannel):
    transport = Transport.DATAGRAM

    @classmethod
    def connect(cls, host: str, port: int) -> "DatagramChannel":
        # IPv4 only, matching the servers this client talks to
        family, type_, proto, _, addr = socket.getaddrinfo(
            host, port, socket.AF_INET, socket.SOCK_DGRAM
        )[0]
        sock = socket.socket(family, type_, proto)
        try:
            sock.connect(addr)
        except OSError:
            sock.close()
            raise
        return cls(sock)

    def send(self, data: bytes) -> None:
        self.sock.send(data)


class SocketChannelFactory:
    def __init__(self, host: str, port: int, connect_timeout: float | None = None):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout

    def open(self, transport: Transport) -> Channel:
        logger.debug("opening %s channel to %s:%d", transport.value, self.host, self.port)
        if transport is Transport.STREAM:
            return StreamChannel.connect(self.host, self.port, timeout=self.connect_timeout)
        return DatagramChannel.connect(self.host, self.port)
