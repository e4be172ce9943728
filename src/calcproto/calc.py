from __future__ import annotations

import enum

from .constants import ARITH_ADD, ARITH_DIV, ARITH_MUL, ARITH_SUB


class Operation(enum.IntEnum):
    UNKNOWN = 0
    ADD = ARITH_ADD
    SUB = ARITH_SUB
    MUL = ARITH_MUL
    DIV = ARITH_DIV


_NAMES = {
    Operation.ADD: "add",
    Operation.SUB: "sub",
    Operation.MUL: "mul",
    Operation.DIV: "div",
}
_CODES = {name: op for op, name in _NAMES.items()}


def to_int32(value: int) -> int:
    """Wrap an arbitrary Python int to a signed 32-bit value."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def calculate(op: int, a: int, b: int) -> int:
    """Apply ``op`` to two int32 operands.

    Division truncates toward zero and division by zero yields 0, as does an
    unknown operation code. Overflow wraps like a 32-bit register.
    """
    if op == Operation.ADD:
        r = a + b
    elif op == Operation.SUB:
        r = a - b
    elif op == Operation.MUL:
        r = a * b
    elif op == Operation.DIV:
        if b == 0:
            return 0
        r = _trunc_div(a, b)
    else:
        return 0
    return to_int32(r)


def operation_from_name(name: str) -> int:
    return int(_CODES.get(name.lower(), Operation.UNKNOWN))


def name_from_operation(op: int) -> str:
    try:
        return _NAMES[Operation(op)]
    except (ValueError, KeyError):
        return "unknown"
