from __future__ import annotations

import dataclasses
import enum
import re
import struct
from dataclasses import dataclass

from .calc import name_from_operation, operation_from_name
from .constants import (
    ASSIGNMENT_FORMAT,
    CALC_MESSAGE,
    CALC_PROTOCOL,
    CONTROL_FORMAT,
    INT32_MAX,
    INT32_MIN,
    MAJOR_VERSION,
    MINOR_VERSION,
    MSG_HELLO,
    MSG_NOT_OK,
    PROTOCOL_UDP,
)
from .errors import FormatError, ProtocolMismatchError, SizeMismatchError

CONTROL_STRUCT = struct.Struct(CONTROL_FORMAT)
ASSIGNMENT_STRUCT = struct.Struct(ASSIGNMENT_FORMAT)
INT_TOKEN_RE = re.compile(r"[+-]?[0-9]+")


class Encoding(str, enum.Enum):
    TEXT = "text"
    BINARY = "binary"


class Transport(str, enum.Enum):
    STREAM = "tcp"
    DATAGRAM = "udp"


def _check_version(record: str, type_: int, expected_type: int, major: int, minor: int) -> None:
    if type_ != expected_type:
        raise ProtocolMismatchError(f"{record}: type {type_}, expected {expected_type}")
    if (major, minor) != (MAJOR_VERSION, MINOR_VERSION):
        raise ProtocolMismatchError(
            f"{record}: version {major}.{minor}, expected {MAJOR_VERSION}.{MINOR_VERSION}"
        )


def _pack(s: struct.Struct, *fields: int) -> bytes:
    try:
        return s.pack(*fields)
    except struct.error as e:
        raise ValueError(f"field out of range: {e}") from e


@dataclass(frozen=True, slots=True)
class Assignment:
    operation: int
    value1: int
    value2: int
    id: int | None = None

    @property
    def name(self) -> str:
        return name_from_operation(self.operation)

    def describe(self) -> str:
        return f"{self.name} {self.value1} {self.value2}"


@dataclass(frozen=True, slots=True)
class ControlMessage:
    type: int
    message: int
    protocol: int
    major_version: int
    minor_version: int

    SIZE = CONTROL_STRUCT.size

    def to_bytes(self) -> bytes:
        return _pack(
            CONTROL_STRUCT,
            self.type,
            self.message,
            self.protocol,
            self.major_version,
            self.minor_version,
        )

    @staticmethod
    def from_bytes(raw: bytes, strict: bool = True) -> "ControlMessage":
        if len(raw) != CONTROL_STRUCT.size:
            raise SizeMismatchError("control message", CONTROL_STRUCT.size, len(raw))
        msg = ControlMessage(*CONTROL_STRUCT.unpack(raw))
        if strict:
            _check_version("control message", msg.type, CALC_MESSAGE, msg.major_version, msg.minor_version)
        return msg

    @property
    def is_not_ok(self) -> bool:
        return self.type == CALC_MESSAGE and self.message == MSG_NOT_OK

    @staticmethod
    def make(message: int) -> "ControlMessage":
        return ControlMessage(
            type=CALC_MESSAGE,
            message=message,
            protocol=PROTOCOL_UDP,
            major_version=MAJOR_VERSION,
            minor_version=MINOR_VERSION,
        )

    @staticmethod
    def hello() -> "ControlMessage":
        return ControlMessage.make(MSG_HELLO)


@dataclass(frozen=True, slots=True)
class AssignmentRecord:
    type: int
    major_version: int
    minor_version: int
    id: int
    arith: int
    value1: int
    value2: int
    result: int = 0

    SIZE = ASSIGNMENT_STRUCT.size

    def to_bytes(self) -> bytes:
        return _pack(
            ASSIGNMENT_STRUCT,
            self.type,
            self.major_version,
            self.minor_version,
            self.id,
            self.arith,
            self.value1,
            self.value2,
            self.result,
        )

    @staticmethod
    def from_bytes(raw: bytes) -> "AssignmentRecord":
        if len(raw) != ASSIGNMENT_STRUCT.size:
            raise SizeMismatchError("assignment record", ASSIGNMENT_STRUCT.size, len(raw))
        rec = AssignmentRecord(*ASSIGNMENT_STRUCT.unpack(raw))
        _check_version("assignment record", rec.type, CALC_PROTOCOL, rec.major_version, rec.minor_version)
        return rec

    @staticmethod
    def make(id: int, arith: int, value1: int, value2: int) -> "AssignmentRecord":
        return AssignmentRecord(
            type=CALC_PROTOCOL,
            major_version=MAJOR_VERSION,
            minor_version=MINOR_VERSION,
            id=id,
            arith=arith,
            value1=value1,
            value2=value2,
        )

    def with_result(self, result: int) -> "AssignmentRecord":
        return dataclasses.replace(self, result=result)

    def to_assignment(self) -> Assignment:
        return Assignment(self.arith, self.value1, self.value2, id=self.id)


# Text line formats


def greeting_line(encoding: Encoding, transport: Transport) -> str:
    return f"{encoding.name} {transport.value.upper()} {MAJOR_VERSION}.{MINOR_VERSION}"


def acceptance_line(encoding: Encoding, transport: Transport) -> bytes:
    return f"{greeting_line(encoding, transport)} OK\n".encode("ascii")


def greeting_supports(block: bytes, line: str) -> bool:
    """True if the server's capability block lists ``line`` exactly."""
    text = block.decode("ascii", errors="replace")
    return line in text.splitlines()


def _parse_int32(token: str) -> int:
    if INT_TOKEN_RE.fullmatch(token) is None:
        raise FormatError(f"not an integer: {token!r}")
    value = int(token)
    if not INT32_MIN <= value <= INT32_MAX:
        raise FormatError(f"integer out of range: {value}")
    return value


def parse_text_assignment(line: str) -> Assignment:
    tokens = line.split()
    if len(tokens) != 3:
        raise FormatError(f"expected '<op> <v1> <v2>', got {line.strip()!r}")
    op, v1, v2 = tokens
    return Assignment(operation_from_name(op), _parse_int32(v1), _parse_int32(v2))


def parse_text_verdict(line: str) -> bool:
    return line.strip() == "OK"


def format_text_result(result: int) -> bytes:
    return f"{result}\n".encode("ascii")
