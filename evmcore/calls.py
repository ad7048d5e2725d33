"""Message call and contract creation instructions."""

from __future__ import annotations

from .environment import ADDITIONAL_COLD_ACCOUNT_ACCESS_COST, check_memory, num_words
from .opcodes import Opcode
from .state import (
    AccessStatus,
    CallKind,
    ExecutionError,
    ExecutionState,
    Message,
    Revision,
    Stack,
    StatusCode,
)

_MAX_INT64 = (1 << 63) - 1
_CALL_VALUE_COST = 9000
_NEW_ACCOUNT_COST = 25000
_CALL_STIPEND = 2300
_CALL_DEPTH_LIMIT = 1024
_MAX_INITCODE_SIZE = 0xC000
_ADDRESS_MASK = (1 << 160) - 1


def _charge(state: ExecutionState, cost: int) -> None:
    state.gas_left -= cost
    if state.gas_left < 0:
        raise ExecutionError(StatusCode.OUT_OF_GAS)


def _to_address(value: int) -> bytes:
    return (value & _ADDRESS_MASK).to_bytes(20, "big")


def _call(stack: Stack, state: ExecutionState, op: Opcode) -> None:
    gas_arg = stack.pop()
    dst = _to_address(stack.pop())
    value = 0 if op in (Opcode.STATICCALL, Opcode.DELEGATECALL) else stack.pop()
    has_value = value != 0
    input_offset = stack.pop()
    input_size = stack.pop()
    output_offset = stack.pop()
    output_size = stack.pop()

    stack.push(0)  # Assume failure.
    state.return_data = b""

    if state.revision >= Revision.BERLIN and state.host.access_account(dst) == AccessStatus.COLD:
        _charge(state, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)

    check_memory(state, input_offset, input_size)
    check_memory(state, output_offset, output_size)

    parent = state.message
    if op == Opcode.DELEGATECALL:
        kind = CallKind.DELEGATECALL
    elif op == Opcode.CALLCODE:
        kind = CallKind.CALLCODE
    else:
        kind = CallKind.CALL

    cost = _CALL_VALUE_COST if has_value else 0
    if op == Opcode.CALL:
        if has_value and state.in_static_mode():
            raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)
        if (has_value or state.revision < Revision.SPURIOUS_DRAGON) and not (
            state.host.account_exists(dst)
        ):
            cost += _NEW_ACCOUNT_COST
    _charge(state, cost)

    msg_gas = min(gas_arg, _MAX_INT64)
    if state.revision >= Revision.TANGERINE_WHISTLE:
        msg_gas = min(msg_gas, state.gas_left - state.gas_left // 64)
    elif msg_gas > state.gas_left:
        raise ExecutionError(StatusCode.OUT_OF_GAS)

    if has_value:
        msg_gas += _CALL_STIPEND
        state.gas_left += _CALL_STIPEND

    if parent.depth >= _CALL_DEPTH_LIMIT:
        return  # Light failure.
    if has_value and state.host.get_balance(parent.recipient) < value:
        return  # Light failure.

    message = Message(
        kind=kind,
        is_static=True if op == Opcode.STATICCALL else parent.is_static,
        depth=parent.depth + 1,
        gas=msg_gas,
        recipient=dst if op in (Opcode.CALL, Opcode.STATICCALL) else parent.recipient,
        sender=parent.sender if op == Opcode.DELEGATECALL else parent.recipient,
        input_data=state.memory[input_offset : input_offset + input_size] if input_size else b"",
        value=parent.value if op == Opcode.DELEGATECALL else value,
        code_address=dst,
    )

    result = state.host.call(message)
    state.return_data = bytes(result.output_data)
    stack.set(0, int(result.status_code == StatusCode.SUCCESS))

    copy_size = min(output_size, len(result.output_data))
    if copy_size > 0:
        state.memory[output_offset : output_offset + copy_size] = result.output_data[:copy_size]

    state.gas_left -= msg_gas - result.gas_left
    state.gas_refund += result.gas_refund


def call(stack: Stack, state: ExecutionState) -> None:
    """CALL: call another account, optionally transferring value."""
    _call(stack, state, Opcode.CALL)


def callcode(stack: Stack, state: ExecutionState) -> None:
    """CALLCODE: run another account's code in the context of the current account."""
    _call(stack, state, Opcode.CALLCODE)


def delegatecall(stack: Stack, state: ExecutionState) -> None:
    """DELEGATECALL: like CALLCODE, keeping the caller's sender and value."""
    _call(stack, state, Opcode.DELEGATECALL)


def staticcall(stack: Stack, state: ExecutionState) -> None:
    """STATICCALL: call another account forbidding state modifications."""
    _call(stack, state, Opcode.STATICCALL)


def _create(stack: Stack, state: ExecutionState, op: Opcode) -> None:
    if state.in_static_mode():
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)

    endowment = stack.pop()
    init_code_offset = stack.pop()
    init_code_size = stack.pop()
    salt = stack.pop() if op == Opcode.CREATE2 else 0

    stack.push(0)  # Assume failure.
    state.return_data = b""

    check_memory(state, init_code_offset, init_code_size)

    if state.revision >= Revision.SHANGHAI and init_code_size > _MAX_INITCODE_SIZE:
        raise ExecutionError(StatusCode.OUT_OF_GAS)

    word_cost = 6 * (op == Opcode.CREATE2) + 2 * (state.revision >= Revision.SHANGHAI)
    _charge(state, num_words(init_code_size) * word_cost)

    parent = state.message
    if parent.depth >= _CALL_DEPTH_LIMIT:
        return  # Light failure.
    if endowment != 0 and state.host.get_balance(parent.recipient) < endowment:
        return  # Light failure.

    msg_gas = state.gas_left
    if state.revision >= Revision.TANGERINE_WHISTLE:
        msg_gas -= msg_gas // 64

    message = Message(
        kind=CallKind.CREATE if op == Opcode.CREATE else CallKind.CREATE2,
        depth=parent.depth + 1,
        gas=msg_gas,
        sender=parent.recipient,
        input_data=(
            state.memory[init_code_offset : init_code_offset + init_code_size]
            if init_code_size
            else b""
        ),
        value=endowment,
        create2_salt=salt,
    )

    result = state.host.call(message)
    state.gas_left -= msg_gas - result.gas_left
    state.gas_refund += result.gas_refund

    state.return_data = bytes(result.output_data)
    if result.status_code == StatusCode.SUCCESS:
        stack.set(0, int.from_bytes(result.create_address, "big"))


def create(stack: Stack, state: ExecutionState) -> None:
    """CREATE: create a new contract from init code in memory."""
    _create(stack, state, Opcode.CREATE)


def create2(stack: Stack, state: ExecutionState) -> None:
    """CREATE2: create a new contract at a salted, deterministic address."""
    _create(stack, state, Opcode.CREATE2)