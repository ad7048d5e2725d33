"""Execution state, memory, stack and the host interface of the EVM."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from Crypto.Hash import keccak

STACK_LIMIT = 1024
"""The maximum number of EVM stack items."""

ZERO_ADDRESS = bytes(20)
ZERO_HASH = bytes(32)

_UINT256_MASK = (1 << 256) - 1


class Revision(IntEnum):
    """Ethereum protocol revisions, in chronological order."""

    FRONTIER = 0
    HOMESTEAD = 1
    TANGERINE_WHISTLE = 2
    SPURIOUS_DRAGON = 3
    BYZANTIUM = 4
    CONSTANTINOPLE = 5
    PETERSBURG = 6
    ISTANBUL = 7
    BERLIN = 8
    LONDON = 9
    PARIS = 10
    SHANGHAI = 11
    CANCUN = 12


class StatusCode(IntEnum):
    """Outcome of an execution."""

    SUCCESS = 0
    FAILURE = 1
    REVERT = 2
    OUT_OF_GAS = 3
    INVALID_INSTRUCTION = 4
    UNDEFINED_INSTRUCTION = 5
    STACK_OVERFLOW = 6
    STACK_UNDERFLOW = 7
    BAD_JUMP_DESTINATION = 8
    INVALID_MEMORY_ACCESS = 9
    CALL_DEPTH_EXCEEDED = 10
    STATIC_MODE_VIOLATION = 11


class CallKind(IntEnum):
    """Kind of a message call."""

    CALL = 0
    DELEGATECALL = 1
    CALLCODE = 2
    CREATE = 3
    CREATE2 = 4


class AccessStatus(IntEnum):
    """Whether an account had been accessed before in the transaction."""

    COLD = 0
    WARM = 1


class ExecutionError(Exception):
    """Raised when execution stops with a non-success status."""

    def __init__(self, status: StatusCode) -> None:
        super().__init__(status.name)
        self.status = status


@dataclass
class Message:
    """A message call or contract creation."""

    kind: CallKind = CallKind.CALL
    is_static: bool = False
    depth: int = 0
    gas: int = 0
    recipient: bytes = ZERO_ADDRESS
    sender: bytes = ZERO_ADDRESS
    input_data: bytes = b""
    value: int = 0
    create2_salt: int = 0
    code_address: bytes = ZERO_ADDRESS


@dataclass
class TxContext:
    """Transaction and block information."""

    gas_price: int = 0
    origin: bytes = ZERO_ADDRESS
    coinbase: bytes = ZERO_ADDRESS
    number: int = 0
    timestamp: int = 0
    gas_limit: int = 0
    prev_randao: int = 0
    chain_id: int = 0
    base_fee: int = 0


@dataclass
class CallResult:
    """The result of a nested call made through the host."""

    status_code: StatusCode
    gas_left: int
    gas_refund: int = 0
    output_data: bytes = b""
    create_address: bytes = ZERO_ADDRESS


class Host:
    """An in-memory world state answering the queries of executing code."""

    def __init__(
        self,
        *,
        balances: dict[bytes, int] | None = None,
        codes: dict[bytes, bytes] | None = None,
        block_hashes: dict[int, bytes] | None = None,
        tx_context: TxContext | None = None,
        call_result: CallResult | None = None,
    ) -> None:
        self.balances = dict(balances or {})
        self.codes = dict(codes or {})
        self.block_hashes = dict(block_hashes or {})
        self.tx_context = tx_context if tx_context is not None else TxContext()
        self.call_result = call_result
        self.accessed: set[bytes] = set()
        self.logs: list[tuple[bytes, bytes, tuple[int, ...]]] = []
        self.calls: list[Message] = []
        self.selfdestructs: dict[bytes, bytes] = {}

    def account_exists(self, address: bytes) -> bool:
        return address in self.balances or address in self.codes

    def get_balance(self, address: bytes) -> int:
        return self.balances.get(address, 0)

    def get_code_size(self, address: bytes) -> int:
        return len(self.codes.get(address, b""))

    def get_code_hash(self, address: bytes) -> bytes:
        """Return the keccak256 of the account's code, or zeros if it does not exist."""
        if not self.account_exists(address):
            return ZERO_HASH
        return keccak.new(digest_bits=256, data=self.codes.get(address, b"")).digest()

    def copy_code(self, address: bytes, offset: int, size: int) -> bytes:
        """Return up to size bytes of the account's code starting at offset."""
        return self.codes.get(address, b"")[offset : offset + size]

    def selfdestruct(self, address: bytes, beneficiary: bytes) -> bool:
        """Record a self-destruct; True if the account had not self-destructed yet."""
        if address in self.selfdestructs:
            return False
        self.selfdestructs[address] = beneficiary
        return True

    def call(self, message: Message) -> CallResult:
        self.calls.append(message)
        if self.call_result is not None:
            return self.call_result
        return CallResult(StatusCode.SUCCESS, gas_left=message.gas)

    def get_tx_context(self) -> TxContext:
        return self.tx_context

    def get_block_hash(self, number: int) -> bytes:
        return self.block_hashes.get(number, ZERO_HASH)

    def emit_log(self, address: bytes, data: bytes, topics) -> None:
        self.logs.append((address, bytes(data), tuple(topics)))

    def access_account(self, address: bytes) -> AccessStatus:
        """Mark the account as accessed and report whether it was warm before."""
        if address in self.accessed:
            return AccessStatus.WARM
        self.accessed.add(address)
        return AccessStatus.COLD


class Memory:
    """The EVM memory: a zero-filled byte array growing in 32-byte words."""

    def __init__(self) -> None:
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

    @property
    def size(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __getitem__(self, key):
        if isinstance(key, slice):
            return bytes(self._data[key])
        return self._data[key]

    def __setitem__(self, key, value) -> None:
        if isinstance(key, slice):
            expected = len(range(*key.indices(len(self._data))))
            if len(value) != expected:
                raise ValueError("memory slice assignment must not change its size")
        self._data[key] = value

    def grow(self, new_size: int) -> None:
        """Grow the memory to new_size bytes, filling the extension with zeros."""
        if new_size % 32 != 0:
            raise ValueError("memory size must be a multiple of 32")
        if new_size <= len(self._data):
            raise ValueError("memory can only grow")
        self._data.extend(bytes(new_size - len(self._data)))

    def clear(self) -> None:
        self._data.clear()


class Stack:
    """The EVM stack of 256-bit words; index 0 is the top item."""

    def __init__(self) -> None:
        self._items: list[int] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return reversed(self._items)

    def push(self, value: int) -> None:
        if len(self._items) >= STACK_LIMIT:
            raise ExecutionError(StatusCode.STACK_OVERFLOW)
        self._items.append(value & _UINT256_MASK)

    def pop(self) -> int:
        if not self._items:
            raise ExecutionError(StatusCode.STACK_UNDERFLOW)
        return self._items.pop()

    def top(self) -> int:
        return self[0]

    def _position(self, index: int) -> int:
        if index < 0:
            raise IndexError("stack index must not be negative")
        if index >= len(self._items):
            raise ExecutionError(StatusCode.STACK_UNDERFLOW)
        return len(self._items) - 1 - index

    def __getitem__(self, index: int) -> int:
        return self._items[self._position(index)]

    def set(self, index: int, value: int) -> None:
        """Replace the item at the given depth from the top."""
        self._items[self._position(index)] = value & _UINT256_MASK

    def clear(self) -> None:
        self._items.clear()


class ExecutionState:
    """The state of one code execution."""

    def __init__(
        self,
        message: Message | None = None,
        revision: Revision = Revision.FRONTIER,
        host: Host | None = None,
        code: bytes = b"",
    ) -> None:
        self.memory = Memory()
        self.stack = Stack()
        self.analysis = None
        self.reset(
            message if message is not None else Message(),
            revision,
            host if host is not None else Host(),
            code,
        )

    def reset(self, message: Message, revision: Revision, host: Host, code: bytes) -> None:
        """Reset the state so that it can be reused for another execution."""
        self.gas_left = message.gas
        self.gas_refund = 0
        self.memory.clear()
        self.stack.clear()
        self.message = message
        self.host = host
        self.revision = Revision(revision)
        self.return_data = b""
        self.original_code = bytes(code)
        self.status = StatusCode.SUCCESS
        self.output_offset = 0
        self.output_size = 0
        self._tx: TxContext | None = None

    def in_static_mode(self) -> bool:
        return self.message.is_static

    def get_tx_context(self) -> TxContext:
        """Return the transaction context, querying the host only once."""
        if self._tx is None or self._tx.timestamp == 0:
            self._tx = self.host.get_tx_context()
        return self._tx