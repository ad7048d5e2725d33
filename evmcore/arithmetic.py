"""Stack-only EVM instructions: arithmetic, comparison, bitwise and stack manipulation.

Every function takes the stack with its operands on top (index 0 is the first
operand) and leaves the result in place of the consumed operands. The caller
is expected to have charged the instruction's base gas cost.
"""

from __future__ import annotations

from typing import Callable

from .state import ExecutionError, ExecutionState, Revision, Stack, StatusCode

_WORD_BITS = 256
_MASK = (1 << _WORD_BITS) - 1
_SIGN_BIT = 1 << (_WORD_BITS - 1)


def _to_signed(value: int) -> int:
    return value - (1 << _WORD_BITS) if value & _SIGN_BIT else value


def _binary(stack: Stack, fn: Callable[[int, int], int]) -> None:
    """Replace the two top items a (top) and b with fn(a, b)."""
    a, b = stack[0], stack[1]
    stack.pop()
    stack.set(0, fn(a, b))


def _ternary(stack: Stack, fn: Callable[[int, int, int], int]) -> None:
    """Replace the three top items a (top), b and c with fn(a, b, c)."""
    a, b, c = stack[0], stack[1], stack[2]
    stack.pop()
    stack.pop()
    stack.set(0, fn(a, b, c))


def _unary(stack: Stack, fn: Callable[[int], int]) -> None:
    stack.set(0, fn(stack[0]))


def add(stack: Stack) -> None:
    _binary(stack, lambda a, b: a + b)


def mul(stack: Stack) -> None:
    _binary(stack, lambda a, b: a * b)


def sub(stack: Stack) -> None:
    _binary(stack, lambda a, b: a - b)


def div(stack: Stack) -> None:
    _binary(stack, lambda a, b: a // b if b else 0)


def _sdiv(a: int, b: int) -> int:
    if b == 0:
        return 0
    sa, sb = _to_signed(a), _to_signed(b)
    quotient = abs(sa) // abs(sb)
    return -quotient if (sa < 0) != (sb < 0) else quotient


def sdiv(stack: Stack) -> None:
    _binary(stack, _sdiv)


def mod(stack: Stack) -> None:
    _binary(stack, lambda a, b: a % b if b else 0)


def _smod(a: int, b: int) -> int:
    if b == 0:
        return 0
    sa, sb = _to_signed(a), _to_signed(b)
    remainder = abs(sa) % abs(sb)
    return -remainder if sa < 0 else remainder


def smod(stack: Stack) -> None:
    _binary(stack, _smod)


def addmod(stack: Stack) -> None:
    _ternary(stack, lambda x, y, m: (x + y) % m if m else 0)


def mulmod(stack: Stack) -> None:
    _ternary(stack, lambda x, y, m: (x * y) % m if m else 0)


def exp(stack: Stack, state: ExecutionState) -> None:
    """Raise the top item to the power of the second, charging per exponent byte.

    Raises ExecutionError(OUT_OF_GAS) when the dynamic cost cannot be paid.
    """
    base, exponent = stack[0], stack[1]
    significant_bytes = (exponent.bit_length() + 7) // 8
    byte_cost = 50 if state.revision >= Revision.SPURIOUS_DRAGON else 10
    state.gas_left -= significant_bytes * byte_cost
    if state.gas_left < 0:
        raise ExecutionError(StatusCode.OUT_OF_GAS)
    stack.pop()
    stack.set(0, pow(base, exponent, 1 << _WORD_BITS))


def _signextend(ext: int, x: int) -> int:
    if ext >= 31:
        return x
    sign_bit = 8 * ext + 7
    value_mask = (1 << (sign_bit + 1)) - 1
    if (x >> sign_bit) & 1:
        return x | (_MASK & ~value_mask)
    return x & value_mask


def signextend(stack: Stack) -> None:
    _binary(stack, _signextend)


def lt(stack: Stack) -> None:
    _binary(stack, lambda a, b: int(a < b))


def gt(stack: Stack) -> None:
    _binary(stack, lambda a, b: int(a > b))


def slt(stack: Stack) -> None:
    _binary(stack, lambda a, b: int(_to_signed(a) < _to_signed(b)))


def sgt(stack: Stack) -> None:
    _binary(stack, lambda a, b: int(_to_signed(a) > _to_signed(b)))


def eq(stack: Stack) -> None:
    _binary(stack, lambda a, b: int(a == b))


def iszero(stack: Stack) -> None:
    _unary(stack, lambda a: int(a == 0))


def and_(stack: Stack) -> None:
    _binary(stack, lambda a, b: a & b)


def or_(stack: Stack) -> None:
    _binary(stack, lambda a, b: a | b)


def xor_(stack: Stack) -> None:
    _binary(stack, lambda a, b: a ^ b)


def not_(stack: Stack) -> None:
    _unary(stack, lambda a: ~a & _MASK)


def byte(stack: Stack) -> None:
    """Replace n and x with the n-th byte of x counted from the most significant."""
    _binary(stack, lambda n, x: (x >> (8 * (31 - n))) & 0xFF if n < 32 else 0)


def shl(stack: Stack) -> None:
    _binary(stack, lambda shift, x: x << shift if shift < _WORD_BITS else 0)


def shr(stack: Stack) -> None:
    _binary(stack, lambda shift, x: x >> shift if shift < _WORD_BITS else 0)


def _sar(shift: int, x: int) -> int:
    signed = _to_signed(x)
    if shift >= _WORD_BITS:
        return -1 if signed < 0 else 0
    return signed >> shift


def sar(stack: Stack) -> None:
    _binary(stack, _sar)


def pop(stack: Stack) -> None:
    stack.pop()


def push0(stack: Stack) -> None:
    stack.push(0)


def push(stack: Stack, data: bytes, length: int) -> None:
    """Push the first length bytes of data as a big-endian word.

    Missing trailing bytes (code ending inside push data) are taken as zeros.
    """
    if not 1 <= length <= 32:
        raise ValueError(f"push length must be between 1 and 32, got {length}")
    stack.push(int.from_bytes(bytes(data[:length]).ljust(length, b"\x00"), "big"))


def dup(stack: Stack, n: int) -> None:
    """Duplicate the n-th stack item (DUP1..DUP16)."""
    if not 1 <= n <= 16:
        raise ValueError(f"dup depth must be between 1 and 16, got {n}")
    stack.push(stack[n - 1])


def _swap_with_top(stack: Stack, n: int) -> None:
    top, other = stack[0], stack[n]
    stack.set(0, other)
    stack.set(n, top)


def swap(stack: Stack, n: int) -> None:
    """Exchange the top item with the (n+1)-th item (SWAP1..SWAP16)."""
    if not 1 <= n <= 16:
        raise ValueError(f"swap depth must be between 1 and 16, got {n}")
    _swap_with_top(stack, n)


def dupn(stack: Stack, immediate: int) -> None:
    """Duplicate the (immediate+1)-th stack item."""
    n = immediate + 1
    if len(stack) < n:
        raise ExecutionError(StatusCode.STACK_UNDERFLOW)
    stack.push(stack[n - 1])


def swapn(stack: Stack, immediate: int) -> None:
    """Exchange the top item with the (immediate+2)-th item."""
    n = immediate + 1
    if len(stack) <= n:
        raise ExecutionError(StatusCode.STACK_UNDERFLOW)
    _swap_with_top(stack, n)