import pytest

from evmcore import arithmetic as ar
from evmcore.state import (
    ExecutionError,
    ExecutionState,
    Message,
    Revision,
    Stack,
    StatusCode,
)

MAX = (1 << 256) - 1
MIN_SIGNED = 1 << 255


def make_stack(*items):
    """Build a stack whose top is the first item given."""
    stack = Stack()
    for value in reversed(items):
        stack.push(value)
    return stack


def run(fn, *items):
    stack = make_stack(*items)
    fn(stack)
    return list(stack)


def neg(value):
    return (-value) & MAX


VALUES = [0, 1, 2, 7, 0xFF, 1 << 64, MIN_SIGNED, MAX - 5, MAX]


def test_add_wraps_around():
    assert run(ar.add, MAX, 1) == [0]


@pytest.mark.parametrize("a", VALUES)
@pytest.mark.parametrize("b", VALUES[:4])
def test_add_is_commutative(a, b):
    assert run(ar.add, a, b) == run(ar.add, b, a)


@pytest.mark.parametrize("a", VALUES)
@pytest.mark.parametrize("b", VALUES)
def test_sub_then_add_round_trip(a, b):
    (diff,) = run(ar.sub, a, b)
    assert run(ar.add, diff, b) == [a]


def test_sub_self_is_zero():
    assert run(ar.sub, MAX - 5, MAX - 5) == [0]


def test_binary_op_keeps_rest_of_stack():
    assert run(ar.add, 1, 1, 99) == [2, 99]


@pytest.mark.parametrize("a", VALUES)
@pytest.mark.parametrize("b", [1, 2, 7, 1 << 64, MAX])
def test_div_mod_identity(a, b):
    (q,) = run(ar.div, a, b)
    (r,) = run(ar.mod, a, b)
    assert q * b + r == a
    assert r < b


def test_div_and_mod_by_zero():
    assert run(ar.div, MAX, 0) == [0]
    assert run(ar.mod, MAX, 0) == [0]
    assert run(ar.sdiv, MAX, 0) == [0]
    assert run(ar.smod, MAX, 0) == [0]


def test_sdiv_overflow_case():
    assert run(ar.sdiv, MIN_SIGNED, MAX) == [MIN_SIGNED]


def test_sdiv_rounds_toward_zero():
    assert run(ar.sdiv, neg(7), 2) == [neg(3)]


@pytest.mark.parametrize("a", [7, neg(7), MIN_SIGNED + 3, 100])
@pytest.mark.parametrize("b", [2, neg(2), 3, neg(5)])
def test_sdiv_smod_identity(a, b):
    def signed(x):
        return x - (1 << 256) if x >> 255 else x

    (q,) = run(ar.sdiv, a, b)
    (r,) = run(ar.smod, a, b)
    assert signed(q) * signed(b) + signed(r) == signed(a)
    assert abs(signed(r)) < abs(signed(b))
    assert signed(r) == 0 or (signed(r) < 0) == (signed(a) < 0)


def test_mul_of_max_squared():
    assert run(ar.mul, MAX, MAX) == [1]


def test_addmod_uses_full_precision():
    assert run(ar.addmod, MAX, MAX, MAX) == [0]
    assert run(ar.addmod, 1, 2, 0) == [0]


@pytest.mark.parametrize("m", [3, 12, 1 << 200, MAX])
def test_mulmod_result_below_modulus_and_commutative(m):
    (r,) = run(ar.mulmod, MAX, MAX - 5, m)
    assert r < m
    assert run(ar.mulmod, MAX - 5, MAX, m) == [r]
    assert run(ar.mulmod, MAX, MAX, 0) == [0]


def make_state(gas, revision):
    return ExecutionState(Message(gas=gas), revision)


def test_exp_charges_per_exponent_byte():
    new = make_state(1000, Revision.BERLIN)
    old = make_state(1000, Revision.HOMESTEAD)
    stack_new = make_stack(2, 0x0100)
    stack_old = make_stack(2, 0x0100)
    ar.exp(stack_new, new)
    ar.exp(stack_old, old)
    assert new.gas_left == 1000 - 2 * 50
    assert old.gas_left == 1000 - 2 * 10
    assert list(stack_new) == [0]
    assert list(stack_old) == [0]


def test_exp_zero_exponent_is_free():
    state = make_state(0, Revision.LONDON)
    stack = make_stack(3, 0)
    ar.exp(stack, state)
    assert list(stack) == [1]
    assert state.gas_left == 0


def test_exp_out_of_gas():
    state = make_state(49, Revision.LONDON)
    with pytest.raises(ExecutionError) as info:
        ar.exp(make_stack(2, 5), state)
    assert info.value.status is StatusCode.OUT_OF_GAS


def test_signextend():
    assert run(ar.signextend, 0, 0xFF) == [MAX]
    assert run(ar.signextend, 0, 0x7F) == [0x7F]
    assert run(ar.signextend, 0, 0x1FF) == [MAX]
    assert run(ar.signextend, 31, 0x80) == [0x80]
    assert run(ar.signextend, MAX, 0xFF) == [0xFF]


def test_comparisons():
    assert run(ar.lt, 1, 2) == [1]
    assert run(ar.lt, MAX, 0) == [0]
    assert run(ar.gt, MAX, 0) == [1]
    assert run(ar.slt, MAX, 0) == [1]
    assert run(ar.sgt, MAX, 0) == [0]
    assert run(ar.eq, 5, 5) == [1]
    assert run(ar.eq, 5, 6) == [0]
    assert run(ar.iszero, 0) == [1]
    assert run(ar.iszero, MAX) == [0]


@pytest.mark.parametrize("x", VALUES)
def test_bitwise_invariants(x):
    (inverted,) = run(ar.not_, x)
    assert run(ar.not_, inverted) == [x]
    assert run(ar.and_, x, inverted) == [0]
    assert run(ar.or_, x, inverted) == [MAX]
    assert run(ar.xor_, x, x) == [0]
    assert run(ar.xor_, x, inverted) == [MAX]


def test_byte():
    word = int.from_bytes(bytes(range(1, 33)), "big")
    assert run(ar.byte, 0, word) == [1]
    assert run(ar.byte, 31, word) == [32]
    assert run(ar.byte, 32, word) == [0]
    assert run(ar.byte, MAX, word) == [0]


def test_shifts():
    assert run(ar.shl, 1, 1) == [2]
    assert run(ar.shl, 256, 1) == [0]
    assert run(ar.shl, 255, 1) == [MIN_SIGNED]
    assert run(ar.shr, 255, MIN_SIGNED) == [1]
    assert run(ar.shr, 256, MAX) == [0]


@pytest.mark.parametrize("shift", [0, 1, 8, 100, 191])
def test_shl_shr_round_trip(shift):
    value = 0xDEADBEEF
    (shifted,) = run(ar.shl, shift, value)
    assert run(ar.shr, shift, shifted) == [value]


def test_sar():
    assert run(ar.sar, 1, MAX) == [MAX]
    assert run(ar.sar, 256, MIN_SIGNED) == [MAX]
    assert run(ar.sar, 255, MIN_SIGNED) == [MAX]
    assert run(ar.sar, 256, 1) == [0]
    assert run(ar.sar, 1, 2) == [1]


def test_pop_and_underflow():
    assert run(ar.pop, 1, 2) == [2]
    with pytest.raises(ExecutionError) as info:
        ar.pop(Stack())
    assert info.value.status is StatusCode.STACK_UNDERFLOW


def test_binary_underflow_leaves_stack_intact():
    stack = make_stack(5)
    with pytest.raises(ExecutionError):
        ar.add(stack)
    assert list(stack) == [5]


def test_push0_and_push():
    stack = Stack()
    ar.push0(stack)
    ar.push(stack, bytes.fromhex("0102"), 2)
    assert list(stack) == [0x0102, 0]


def test_push_with_truncated_data_pads_zeros():
    stack = Stack()
    ar.push(stack, b"\x01", 2)
    assert list(stack) == [0x0100]


def test_push32_full_word():
    stack = Stack()
    ar.push(stack, bytes.fromhex("fe" + "00" * 30 + "ef") + b"\x99", 32)
    assert stack.top().to_bytes(32, "big").hex() == "fe" + "00" * 30 + "ef"


@pytest.mark.parametrize("length", [0, 33])
def test_push_invalid_length(length):
    with pytest.raises(ValueError):
        ar.push(Stack(), bytes(40), length)


def test_dup_and_swap():
    assert run(lambda s: ar.dup(s, 2), 10, 20, 30) == [20, 10, 20, 30]
    assert run(lambda s: ar.swap(s, 2), 10, 20, 30) == [30, 20, 10]


@pytest.mark.parametrize("n", [0, 17])
def test_dup_swap_invalid_depth(n):
    with pytest.raises(ValueError):
        ar.dup(make_stack(1), n)
    with pytest.raises(ValueError):
        ar.swap(make_stack(1, 2), n)


def test_dup_underflow():
    with pytest.raises(ExecutionError) as info:
        ar.dup(make_stack(1), 2)
    assert info.value.status is StatusCode.STACK_UNDERFLOW


def test_dupn_matches_dup():
    assert run(lambda s: ar.dupn(s, 0), 10, 20) == run(lambda s: ar.dup(s, 1), 10, 20)
    assert run(lambda s: ar.dupn(s, 1), 10, 20) == [20, 10, 20]


def test_dupn_underflow():
    with pytest.raises(ExecutionError) as info:
        ar.dupn(make_stack(1, 2), 2)
    assert info.value.status is StatusCode.STACK_UNDERFLOW


def test_swapn_matches_swap():
    assert run(lambda s: ar.swapn(s, 0), 10, 20) == run(lambda s: ar.swap(s, 1), 10, 20)
    assert run(lambda s: ar.swapn(s, 2), 1, 2, 3, 4) == [4, 2, 3, 1]


def test_swapn_underflow():
    with pytest.raises(ExecutionError) as info:
        ar.swapn(make_stack(1, 2), 1)
    assert info.value.status is StatusCode.STACK_UNDERFLOW