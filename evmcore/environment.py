"""EVM instructions that use the execution state: memory, environment, logs and termination.

Every function takes the stack with its operands on top (index 0 is the first
operand) and the execution state. A failing instruction raises ExecutionError
with the status the execution ends with. Instructions that always end the
execution (STOP, RETURN, REVERT, SELFDESTRUCT) return the status code it ends
with.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from .state import (
    ZERO_HASH,
    AccessStatus,
    ExecutionError,
    ExecutionState,
    Revision,
    Stack,
    StatusCode,
)

MAX_BUFFER_SIZE = (1 << 32) - 1
"""The largest memory offset or size an instruction accepts."""

WORD_SIZE = 32
"""The size of an EVM word in bytes."""

COLD_ACCOUNT_ACCESS_COST = 2600
WARM_STORAGE_READ_COST = 100
ADDITIONAL_COLD_ACCOUNT_ACCESS_COST = COLD_ACCOUNT_ACCESS_COST - WARM_STORAGE_READ_COST

_ADDRESS_MASK = (1 << 160) - 1


def _charge(state: ExecutionState, cost: int) -> None:
    state.gas_left -= cost
    if state.gas_left < 0:
        raise ExecutionError(StatusCode.OUT_OF_GAS)


def _to_address(value: int) -> bytes:
    return (value & _ADDRESS_MASK).to_bytes(20, "big")


def _word(data: bytes) -> int:
    return int.from_bytes(data, "big")


def _access_account(state: ExecutionState, address: bytes) -> None:
    """Charge the cold access surcharge from Berlin on."""
    if (
        state.revision >= Revision.BERLIN
        and state.host.access_account(address) == AccessStatus.COLD
    ):
        _charge(state, ADDITIONAL_COLD_ACCOUNT_ACCESS_COST)


def _write_padded(state: ExecutionState, offset: int, data: bytes, size: int) -> None:
    """Write data into memory at offset, zero-filling up to size bytes."""
    if size > 0:
        state.memory[offset : offset + size] = bytes(data[:size]).ljust(size, b"\x00")


def num_words(size: int) -> int:
    """Return the number of 32-byte words needed to hold size bytes."""
    return (size + WORD_SIZE - 1) // WORD_SIZE


def _memory_cost(words: int) -> int:
    return 3 * words + words * words // 512


def grow_memory(state: ExecutionState, new_size: int) -> None:
    """Grow memory to cover new_size bytes, charging the expansion cost."""
    new_words = num_words(new_size)
    current_words = len(state.memory) // WORD_SIZE
    _charge(state, _memory_cost(new_words) - _memory_cost(current_words))
    state.memory.grow(new_words * WORD_SIZE)


def check_memory(state: ExecutionState, offset: int, size: int) -> None:
    """Make the memory range [offset, offset + size) accessible.

    An empty range is always valid. Raises ExecutionError(OUT_OF_GAS) for
    unreasonably large ranges or when the expansion cannot be paid.
    """
    if size == 0:
        return
    if size > MAX_BUFFER_SIZE or offset > MAX_BUFFER_SIZE:
        raise ExecutionError(StatusCode.OUT_OF_GAS)
    new_size = offset + size
    if new_size > len(state.memory):
        grow_memory(state, new_size)


def keccak256(stack: Stack, state: ExecutionState) -> None:
    offset = stack.pop()
    size = stack[0]
    check_memory(state, offset, size)
    _charge(state, num_words(size) * 6)
    data = state.memory[offset : offset + size] if size else b""
    stack.set(0, _word(keccak.new(digest_bits=256, data=data).digest()))


def address(stack: Stack, state: ExecutionState) -> None:
    stack.push(_word(state.message.recipient))


def balance(stack: Stack, state: ExecutionState) -> None:
    addr = _to_address(stack[0])
    _access_account(state, addr)
    stack.set(0, state.host.get_balance(addr))


def origin(stack: Stack, state: ExecutionState) -> None:
    stack.push(_word(state.get_tx_context().origin))


def caller(stack: Stack, state: ExecutionState) -> None:
    stack.push(_word(state.message.sender))


def callvalue(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.message.value)


def calldataload(stack: Stack, state: ExecutionState) -> None:
    index = stack[0]
    data = state.message.input_data
    if len(data) < index:
        stack.set(0, 0)
    else:
        stack.set(0, _word(bytes(data[index : index + 32]).ljust(32, b"\x00")))


def calldatasize(stack: Stack, state: ExecutionState) -> None:
    stack.push(len(state.message.input_data))


def _copy_from(stack: Stack, state: ExecutionState, source: bytes) -> None:
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    src = min(input_index, len(source))
    _charge(state, num_words(size) * 3)
    _write_padded(state, mem_index, source[src : src + size], size)


def calldatacopy(stack: Stack, state: ExecutionState) -> None:
    _copy_from(stack, state, state.message.input_data)


def codesize(stack: Stack, state: ExecutionState) -> None:
    stack.push(len(state.original_code))


def codecopy(stack: Stack, state: ExecutionState) -> None:
    _copy_from(stack, state, state.original_code)


def gasprice(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().gas_price)


def basefee(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().base_fee)


def extcodesize(stack: Stack, state: ExecutionState) -> None:
    addr = _to_address(stack[0])
    _access_account(state, addr)
    stack.set(0, state.host.get_code_size(addr))


def extcodecopy(stack: Stack, state: ExecutionState) -> None:
    addr = _to_address(stack.pop())
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    _charge(state, num_words(size) * 3)
    _access_account(state, addr)
    if size > 0:
        src = min(input_index, MAX_BUFFER_SIZE)
        _write_padded(state, mem_index, state.host.copy_code(addr, src, size), size)


def returndatasize(stack: Stack, state: ExecutionState) -> None:
    stack.push(len(state.return_data))


def returndatacopy(stack: Stack, state: ExecutionState) -> None:
    mem_index = stack.pop()
    input_index = stack.pop()
    size = stack.pop()
    check_memory(state, mem_index, size)
    if len(state.return_data) < input_index or input_index + size > len(state.return_data):
        raise ExecutionError(StatusCode.INVALID_MEMORY_ACCESS)
    _charge(state, num_words(size) * 3)
    if size > 0:
        state.memory[mem_index : mem_index + size] = state.return_data[
            input_index : input_index + size
        ]


def extcodehash(stack: Stack, state: ExecutionState) -> None:
    addr = _to_address(stack[0])
    _access_account(state, addr)
    stack.set(0, _word(state.host.get_code_hash(addr)))


def blockhash(stack: Stack, state: ExecutionState) -> None:
    number_ = stack[0]
    upper_bound = state.get_tx_context().number
    lower_bound = max(upper_bound - 256, 0)
    if lower_bound <= number_ < upper_bound:
        header = state.host.get_block_hash(number_)
    else:
        header = ZERO_HASH
    stack.set(0, _word(header))


def coinbase(stack: Stack, state: ExecutionState) -> None:
    stack.push(_word(state.get_tx_context().coinbase))


def timestamp(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().timestamp)


def number(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().number)


def prevrandao(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().prev_randao)


def gaslimit(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().gas_limit)


def chainid(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.get_tx_context().chain_id)


def selfbalance(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.host.get_balance(state.message.recipient))


def mload(stack: Stack, state: ExecutionState) -> None:
    index = stack[0]
    check_memory(state, index, 32)
    stack.set(0, _word(state.memory[index : index + 32]))


def mstore(stack: Stack, state: ExecutionState) -> None:
    index = stack.pop()
    value = stack.pop()
    check_memory(state, index, 32)
    state.memory[index : index + 32] = value.to_bytes(32, "big")


def mstore8(stack: Stack, state: ExecutionState) -> None:
    index = stack.pop()
    value = stack.pop()
    check_memory(state, index, 1)
    state.memory[index] = value & 0xFF


def msize(stack: Stack, state: ExecutionState) -> None:
    stack.push(len(state.memory))


def gas(stack: Stack, state: ExecutionState) -> None:
    stack.push(state.gas_left)


def log(stack: Stack, state: ExecutionState, num_topics: int) -> None:
    """Emit a log record with num_topics topics (LOG0..LOG4)."""
    if not 0 <= num_topics <= 4:
        raise ValueError(f"number of log topics must be between 0 and 4, got {num_topics}")
    if state.in_static_mode():
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)
    offset = stack.pop()
    size = stack.pop()
    check_memory(state, offset, size)
    _charge(state, size * 8)
    topics = [stack.pop() for _ in range(num_topics)]
    data = state.memory[offset : offset + size] if size else b""
    state.host.emit_log(state.message.recipient, data, topics)


def stop() -> StatusCode:
    """End the execution successfully."""
    return StatusCode.SUCCESS


def invalid() -> StatusCode:
    """The designated invalid instruction; always raises."""
    raise ExecutionError(StatusCode.INVALID_INSTRUCTION)


def _return_with(stack: Stack, state: ExecutionState, status: StatusCode) -> StatusCode:
    offset, size = stack[0], stack[1]
    check_memory(state, offset, size)
    state.output_size = size
    if size != 0:
        state.output_offset = offset
    return status


def return_(stack: Stack, state: ExecutionState) -> StatusCode:
    """End the execution returning the given memory range as output."""
    return _return_with(stack, state, StatusCode.SUCCESS)


def revert(stack: Stack, state: ExecutionState) -> StatusCode:
    """End the execution reverting, with the given memory range as output."""
    return _return_with(stack, state, StatusCode.REVERT)


def selfdestruct(stack: Stack, state: ExecutionState) -> StatusCode:
    if state.in_static_mode():
        raise ExecutionError(StatusCode.STATIC_MODE_VIOLATION)

    beneficiary = _to_address(stack[0])
    recipient = state.message.recipient

    if (
        state.revision >= Revision.BERLIN
        and state.host.access_account(beneficiary) == AccessStatus.COLD
    ):
        _charge(state, COLD_ACCOUNT_ACCESS_COST)

    if state.revision >= Revision.TANGERINE_WHISTLE:
        if state.revision == Revision.TANGERINE_WHISTLE or state.host.get_balance(recipient):
            if not state.host.account_exists(beneficiary):
                _charge(state, 25000)

    if state.host.selfdestruct(recipient, beneficiary) and state.revision < Revision.LONDON:
        state.gas_refund += 24000
    return StatusCode.SUCCESS