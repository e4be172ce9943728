"""One CalcProtocol handshake over an already open channel.

The four (transport, encoding) combinations share a single state machine;
they differ only in the first step (stream peers greet us, datagram peers
wait for our hello) and in which codec turns bytes into messages.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from .calc import calculate
from .constants import (
    DEFAULT_TIMEOUT_S,
    GREETING_END,
    MAX_GREETING_BYTES,
    MSG_NOT_OK,
    MSG_OK,
    RECV_BUFSIZE,
)
from .errors import (
    CodecError,
    ConnectionClosedError,
    FailureCause,
    FormatError,
    ProtocolMismatchError,
    SizeMismatchError,
)
from .message import (
    Assignment,
    AssignmentRecord,
    ControlMessage,
    Encoding,
    Transport,
    acceptance_line,
    format_text_result,
    greeting_line,
    greeting_supports,
    parse_text_assignment,
    parse_text_verdict,
)
from .net import Channel

logger = logging.getLogger(__name__)


class State(enum.Enum):
    AWAIT_GREETING = "await-greeting"
    SEND_ACCEPT = "send-accept"
    SEND_HELLO = "send-hello"
    AWAIT_ASSIGNMENT = "await-assignment"
    COMPUTE = "compute"
    SEND_RESULT = "send-result"
    AWAIT_VERDICT = "await-verdict"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


TERMINAL = frozenset({State.DONE, State.REJECTED, State.FAILED})


@dataclass(frozen=True, slots=True)
class SessionConfig:
    encoding: Encoding = Encoding.TEXT
    # applied to datagram receives only; stream receives block
    response_timeout: float = DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        if not 0 < self.response_timeout < float("inf"):
            raise ValueError(f"response_timeout must be positive, got {self.response_timeout}")


@dataclass(frozen=True, slots=True)
class Outcome:
    transport: Transport
    encoding: Encoding
    result: int | None = None
    cause: FailureCause | None = None
    reason: str = ""
    assignment: Assignment | None = None
    assignment_line: str = ""

    @property
    def accepted(self) -> bool:
        return self.cause is None

    @property
    def rejected(self) -> bool:
        return self.cause is FailureCause.REJECTED


@dataclass(slots=True)
class Session:
    channel: Channel
    config: SessionConfig = field(default_factory=SessionConfig)
    state: State = field(init=False)
    assignment: Assignment | None = field(default=None, init=False)
    result: int | None = field(default=None, init=False)
    _record: AssignmentRecord | None = field(default=None, init=False)
    _inbox: bytearray = field(default_factory=bytearray, init=False)
    _reason: str = field(default="", init=False)
    _assignment_line: str = field(default="", init=False)

    def __post_init__(self) -> None:
        self.state = State.AWAIT_GREETING if self.is_stream else State.SEND_HELLO

    @property
    def transport(self) -> Transport:
        return self.channel.transport

    @property
    def encoding(self) -> Encoding:
        return self.config.encoding

    @property
    def is_stream(self) -> bool:
        return self.transport is Transport.STREAM

    @property
    def is_binary(self) -> bool:
        return self.encoding is Encoding.BINARY

    @property
    def timeout(self) -> float | None:
        return None if self.is_stream else self.config.response_timeout

    def run(self) -> Outcome:
        """Drive the handshake to a terminal state; the channel is closed on return."""
        steps = {
            State.AWAIT_GREETING: self._await_greeting,
            State.SEND_ACCEPT: self._send_accept,
            State.SEND_HELLO: self._send_hello,
            State.AWAIT_ASSIGNMENT: self._await_assignment,
            State.COMPUTE: self._compute,
            State.SEND_RESULT: self._send_result,
            State.AWAIT_VERDICT: self._await_verdict,
        }
        try:
            while self.state not in TERMINAL:
                prev = self.state
                self.state = steps[prev]()
                logger.debug("%s/%s: %s -> %s", self.transport.value, self.encoding.value, prev.value, self.state.value)
        except TimeoutError:
            return self._fail(FailureCause.TIMEOUT, f"no response within {self.config.response_timeout}s")
        except CodecError as e:
            return self._fail(e.cause, str(e))
        except OSError as e:
            return self._fail(FailureCause.IO_ERROR, str(e) or e.__class__.__name__)
        finally:
            self.channel.close()

        if self.state is State.REJECTED:
            return self._outcome(cause=FailureCause.REJECTED, reason=self._reason)
        return self._outcome()

    def _outcome(self, cause: FailureCause | None = None, reason: str = "") -> Outcome:
        return Outcome(
            transport=self.transport,
            encoding=self.encoding,
            result=self.result,
            cause=cause,
            reason=reason,
            assignment=self.assignment,
            assignment_line=self._assignment_line,
        )

    def _fail(self, cause: FailureCause, reason: str) -> Outcome:
        logger.debug("%s/%s failed in %s: %s", self.transport.value, self.encoding.value, self.state.value, reason)
        self.state = State.FAILED
        return self._outcome(cause=cause, reason=reason)

    # stream buffering

    def _fill(self) -> None:
        self._inbox += self.channel.receive(RECV_BUFSIZE, self.timeout)

    def _read_until(self, marker: bytes, limit: int, partial_at_close: bool = False) -> bytes:
        while (end := self._inbox.find(marker)) < 0:
            if len(self._inbox) > limit:
                raise FormatError(f"no {marker!r} within {limit} bytes")
            try:
                self._fill()
            except ConnectionClosedError:
                if not (partial_at_close and self._inbox):
                    raise
                # peer closed after an unterminated last line
                data = bytes(self._inbox)
                self._inbox.clear()
                return data
        end += len(marker)
        data = bytes(self._inbox[:end])
        del self._inbox[:end]
        return data

    def _read_exact(self, n: int, record: str) -> bytes:
        while len(self._inbox) < n:
            try:
                self._fill()
            except ConnectionClosedError as e:
                if self._inbox:
                    raise SizeMismatchError(record, n, len(self._inbox)) from e
                raise
        data = bytes(self._inbox[:n])
        del self._inbox[:n]
        return data

    # message level receive

    def _receive_line(self) -> str:
        if self.is_stream:
            raw = self._read_until(b"\n", RECV_BUFSIZE, partial_at_close=True)
        else:
            raw = self.channel.receive(RECV_BUFSIZE, self.timeout)
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError:
            raise FormatError(f"non-ascii line: {raw!r}") from None

    def _receive_record(self, size: int, record: str) -> bytes:
        if self.is_stream:
            return self._read_exact(size, record)
        return self.channel.receive(RECV_BUFSIZE, self.timeout)

    # states

    def _await_greeting(self) -> State:
        block = self._read_until(GREETING_END, MAX_GREETING_BYTES)
        wanted = greeting_line(self.encoding, self.transport)
        if not greeting_supports(block, wanted):
            raise ProtocolMismatchError(f"server does not offer {wanted!r}")
        return State.SEND_ACCEPT

    def _send_accept(self) -> State:
        self.channel.send(acceptance_line(self.encoding, self.transport))
        return State.AWAIT_ASSIGNMENT

    def _send_hello(self) -> State:
        if self.is_binary:
            self.channel.send(ControlMessage.hello().to_bytes())
        else:
            self.channel.send(f"{greeting_line(self.encoding, self.transport)}\n".encode("ascii"))
        return State.AWAIT_ASSIGNMENT

    def _await_assignment(self) -> State:
        if not self.is_binary:
            line = self._receive_line()
            self._assignment_line = line.strip()
            self.assignment = parse_text_assignment(line)
            return State.COMPUTE

        raw = self._receive_record(AssignmentRecord.SIZE, "assignment record")
        if len(raw) == ControlMessage.SIZE:
            # a datagram server may refuse the hello outright
            if ControlMessage.from_bytes(raw, strict=False).is_not_ok:
                self._reason = "server sent NOT OK message"
                return State.REJECTED
        self._record = AssignmentRecord.from_bytes(raw)
        self.assignment = self._record.to_assignment()
        self._assignment_line = self.assignment.describe()
        return State.COMPUTE

    def _compute(self) -> State:
        a = self.assignment
        self.result = calculate(a.operation, a.value1, a.value2)
        logger.debug("calculated %s -> %d", a.describe(), self.result)
        return State.SEND_RESULT

    def _send_result(self) -> State:
        if self.is_binary:
            self.channel.send(self._record.with_result(self.result).to_bytes())
        else:
            self.channel.send(format_text_result(self.result))
        return State.AWAIT_VERDICT

    def _await_verdict(self) -> State:
        if not self.is_binary:
            line = self._receive_line()
            if parse_text_verdict(line):
                return State.DONE
            self._reason = f"server replied {line.strip()!r}"
            return State.REJECTED

        msg = ControlMessage.from_bytes(self._receive_record(ControlMessage.SIZE, "control message"))
        if msg.message == MSG_OK:
            return State.DONE
        if msg.message == MSG_NOT_OK:
            self._reason = "server sent NOT OK message"
            return State.REJECTED
        raise ProtocolMismatchError(f"unexpected control message code {msg.message}")
