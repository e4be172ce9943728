from __future__ import annotations

import enum


class FailureCause(enum.Enum):
    IO_ERROR = "io-error"
    SIZE_MISMATCH = "size-mismatch"
    PROTOCOL_MISMATCH = "protocol-mismatch"
    FORMAT_ERROR = "format-error"
    TIMEOUT = "timeout"
    REJECTED = "rejected"


class CodecError(ValueError):
    cause = FailureCause.FORMAT_ERROR


class SizeMismatchError(CodecError):
    cause = FailureCause.SIZE_MISMATCH

    def __init__(self, record: str, expected: int, got: int):
        super().__init__(f"{record}: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got


class ProtocolMismatchError(CodecError):
    cause = FailureCause.PROTOCOL_MISMATCH


class FormatError(CodecError):
    cause = FailureCause.FORMAT_ERROR


class ConnectionClosedError(ConnectionError):
    pass
