from __future__ import annotations

import pytest

from calcproto.errors import ConnectionClosedError
from calcproto.message import Transport


class ScriptedChannel:
    """Channel that replays canned replies and records what was sent."""

    def __init__(self, transport: Transport, replies=()):
        self.transport = transport
        self.replies = list(replies)
        self.sent: list[bytes] = []
        self.timeouts: list[float | None] = []
        self.closed = False

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))

    def receive(self, max_bytes: int = 1024, timeout: float | None = None) -> bytes:
        self.timeouts.append(timeout)
        if not self.replies:
            if self.transport is Transport.STREAM:
                raise ConnectionClosedError("connection closed by peer")
            raise TimeoutError("timed out")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def close(self) -> None:
        self.closed = True


class ScriptedFactory:
    def __init__(self, stream=None, datagram=None):
        self.channels = {Transport.STREAM: stream, Transport.DATAGRAM: datagram}
        self.opened: list[Transport] = []

    def open(self, transport: Transport):
        self.opened.append(transport)
        ch = self.channels[transport]
        if ch is None:
            raise ConnectionRefusedError("no channel scripted")
        if isinstance(ch, BaseException):
            raise ch
        return ch


@pytest.fixture
def stream():
    return lambda *replies: ScriptedChannel(Transport.STREAM, replies)


@pytest.fixture
def datagram():
    return lambda *replies: ScriptedChannel(Transport.DATAGRAM, replies)


@pytest.fixture
def factory():
    return ScriptedFactory
