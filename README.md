# evmcore

The building blocks of an Ethereum Virtual Machine, in plain Python:
the opcode table, the execution state with its memory, stack and host
interface, and the semantics of the EVM instructions, with their dynamic
gas accounting.

## Modules

- `evmcore.opcodes`: the `Opcode` enumeration with every EVM opcode. Its
  members are integers, so `Opcode.PUSH1 == 0x60`.
- `evmcore.state`: `Revision`, `StatusCode`, `CallKind`, `AccessStatus`,
  `ExecutionError`, `Message`, `TxContext`, `CallResult`, `Host`, `Memory`,
  `Stack` and `ExecutionState`.
  - `Host` is an in-memory world state. It keeps balances, codes, block
    hashes and a transaction context. It records the accounts accessed, the
    logs emitted, the nested calls made and the self-destructs. A nested call
    returns the configured `call_result`, or else succeeds and leaves all of
    its gas.
  - `Memory` grows only, in multiples of 32 bytes, and fills each extension
    with zeros.
  - `Stack` holds 256-bit words, with index 0 as the top item. It raises
    `ExecutionError` with `STACK_OVERFLOW` beyond 1024 items and with
    `STACK_UNDERFLOW` when an item is missing.
- `evmcore.arithmetic`: stack-only instructions. These are `add`, `mul`,
  `sub`, `div`, `sdiv`, `mod`, `smod`, `addmod`, `mulmod`, `exp`,
  `signextend`, the comparisons, the bitwise operations, `byte`, the shifts,
  `pop`, `push0`, `push`, `dup`, `swap`, `dupn` and `swapn`.
- `evmcore.environment`: instructions that use the execution state. They
  cover memory (`mload`, `mstore`, `mstore8`, `msize`), hashing
  (`keccak256`), call data, code and return data access, account and block
  queries, `gas` and `log`, and termination (`stop`, `invalid`, `return_`,
  `revert`, `selfdestruct`). The module also holds the memory expansion
  helpers `num_words`, `grow_memory` and `check_memory`.
- `evmcore.calls`: `call`, `callcode`, `delegatecall`, `staticcall`,
  `create` and `create2`. Each builds a `Message` and passes it to the host.

Every instruction takes the `Stack` and, where it needs it, the
`ExecutionState`. An instruction that fails raises `ExecutionError`, and the
`status` of that error is the `StatusCode` the execution ends with.
Instructions that always end execution (`stop`, `return_`, `revert`,
`selfdestruct`) return their status code. Each function charges only the
dynamic part of an instruction's gas cost (memory expansion, copy and
per-byte costs, cold account access). The caller must charge the base cost.

## Installing

```
pip install .
```

To run the tests, install with `pip install .[test]` and then run `pytest`.

## Example

```python
from evmcore import arithmetic, environment
from evmcore.state import ExecutionError, ExecutionState, Message, Revision, StatusCode

state = ExecutionState(Message(gas=100), Revision.LONDON)
stack = state.stack

arithmetic.push(stack, b"\x07", 1)
arithmetic.push(stack, b"\x0d", 1)
arithmetic.add(stack)                  # 20 on top
arithmetic.push0(stack)                # memory offset 0
environment.mstore(stack, state)       # memory grows to 32 bytes, costs 3 gas

arithmetic.push(stack, b"\x20", 1)     # size
arithmetic.push0(stack)                # offset
status = environment.return_(stack, state)

assert status == StatusCode.SUCCESS
offset, size = state.output_offset, state.output_size
print(int.from_bytes(state.memory[offset : offset + size], "big"))  # 20
print(state.gas_left)                                               # 97

try:
    arithmetic.add(ExecutionState().stack)
except ExecutionError as error:
    print(error.status.name)           # STACK_UNDERFLOW
```

## What the package does not do

The package does not run bytecode. It has no interpreter loop that decodes
code, charges base gas costs and dispatches to the instruction functions. It
has no jump destination analysis and no `JUMP`, `JUMPI` or `PC`
instructions. It does not implement storage access (`SLOAD`, `SSTORE`). It
does not recognise or validate EOF containers. It has no command-line tool.