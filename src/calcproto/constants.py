from __future__ import annotations

MAJOR_VERSION = 1
MINOR_VERSION = 1

CALC_MESSAGE = 22  # control message type (hello / verdict)
CALC_PROTOCOL = 1  # assignment record type

MSG_HELLO = 0
MSG_OK = 1
MSG_NOT_OK = 2

PROTOCOL_UDP = 17

ARITH_ADD = 1
ARITH_SUB = 2
ARITH_MUL = 3
ARITH_DIV = 4

CONTROL_FORMAT = "!HHHHH"  # type, message, protocol, major, minor
ASSIGNMENT_FORMAT = "!HHHIIiii"  # type, major, minor, id, arith, value1, value2, result

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

DEFAULT_TIMEOUT_S = 2.0
RECV_BUFSIZE = 1024
MAX_GREETING_BYTES = 64 * 1024
GREETING_END = b"\n\n"
