import functools
import re

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bigslice.ops import (
    Ops,
    can_compare,
    can_hash,
    hash32,
    hash64,
    make_slice_ops,
    murmur3_32,
    register_ops,
)


class DoubleRegistered:
    pass


class LessOnly:
    pass


class HalfCodec:
    pass


class Unregistered:
    pass


class Custom:
    pass


class BadFactory:
    pass


def test_double_registration():
    register_ops(DoubleRegistered, lambda column: Ops())
    with pytest.raises(ValueError) as info:
        register_ops(DoubleRegistered, lambda column: Ops())
    message = str(info.value)
    assert message.startswith("register_ops: ")
    assert "DoubleRegistered" in message
    assert re.search(r"test_ops\.py:\d+$", message)


def test_register_non_callable():
    with pytest.raises(TypeError):
        register_ops(BadFactory, 42)


def test_registered_ops_are_bound_to_column():
    register_ops(Custom, lambda column: Ops(less=lambda i, j: column[i] > column[j]))
    column = [1, 5]
    ops = make_slice_ops(Custom, column)
    assert ops.less(1, 0) is True
    assert ops.less(0, 1) is False
    assert ops.hash_with_seed is None


def test_can_compare_and_hash_builtins():
    for typ in (str, bytes, int, float, bool, type(None)):
        assert can_compare(typ)
        assert can_hash(typ)


def test_unregistered_type():
    assert can_compare(Unregistered) is False
    assert can_hash(Unregistered) is False
    ops = make_slice_ops(Unregistered, [1, 2])
    assert ops.less is None
    assert ops.encode is None


def test_less_only():
    register_ops(LessOnly, lambda column: Ops(less=lambda i, j: False))
    assert can_compare(LessOnly) is True
    assert can_hash(LessOnly) is False


def test_encode_without_decode():
    register_ops(HalfCodec, lambda column: Ops(encode=lambda enc, i, j: None))
    with pytest.raises(ValueError, match="encode and decode"):
        make_slice_ops(HalfCodec, [])


def test_swap_is_generic():
    column = ["a", "b", "c"]
    ops = make_slice_ops(str, column)
    ops.swap(0, 2)
    assert column == ["c", "b", "a"]
    other = [Unregistered(), 3]
    first = other[0]
    make_slice_ops(Unregistered, other).swap(0, 1)
    assert other[1] is first


@pytest.mark.parametrize(
    "data, seed, expected",
    [
        (b"", 0, 0),
        (b"", 1, 0x514E28B7),
        (b"", 0xFFFFFFFF, 0x81F16F39),
        (b"\x00\x00\x00\x00", 0, 0x2362F9DE),
        (b"aaaa", 0x9747B28C, 0x5A97808A),
        (b"Hello, world!", 0x9747B28C, 0x24884CBA),
        (b"The quick brown fox jumps over the lazy dog", 0x9747B28C, 0x2FA826CD),
    ],
)
def test_murmur3_vectors(data, seed, expected):
    assert murmur3_32(data, seed) == expected


def test_hash32_and_hash64_are_little_endian():
    assert hash32(0, 0) == 0x2362F9DE
    assert hash32(0x12345678, 3) == murmur3_32(b"\x78\x56\x34\x12", 3)
    assert hash64(0x0102, 9) == murmur3_32(b"\x02\x01\x00\x00\x00\x00\x00\x00", 9)


def test_hash64_wraps_negative():
    assert hash64(-1, 0) == hash64(2**64 - 1, 0)
    assert hash32(-1, 5) == hash32(2**32 - 1, 5)


def test_string_hash_matches_utf8_bytes():
    column = ["héllo", "x"]
    ops = make_slice_ops(str, column)
    assert ops.hash_with_seed(0, 11) == murmur3_32("héllo".encode("utf-8"), 11)
    bops = make_slice_ops(bytes, [b"abc"])
    assert bops.hash_with_seed(0, 0) == murmur3_32(b"abc", 0)


def test_int_and_float_hash():
    iops = make_slice_ops(int, [7])
    assert iops.hash_with_seed(0, 2) == hash64(7, 2)
    fops = make_slice_ops(float, [1.0])
    assert fops.hash_with_seed(0, 0) == hash64(0x3FF0000000000000, 0)


def test_bool_ops():
    column = [False, True]
    ops = make_slice_ops(bool, column)
    assert ops.less(0, 1) is True
    assert ops.less(1, 0) is False
    assert ops.less(1, 1) is False
    assert ops.hash_with_seed(1, 7) == 8
    assert ops.hash_with_seed(0, 7) == 7
    assert ops.hash_with_seed(1, 0xFFFFFFFF) == 0


def test_unit_ops():
    ops = make_slice_ops(type(None), [None, None])
    assert ops.less(0, 1) is False
    assert ops.hash_with_seed(0, 42) == 42


@given(st.lists(st.text()))
def test_string_less_sorts(values):
    ops = make_slice_ops(str, values)

    def cmp(i, j):
        if ops.less(i, j):
            return -1
        if ops.less(j, i):
            return 1
        return 0

    order = sorted(range(len(values)), key=functools.cmp_to_key(cmp))
    assert [values[i] for i in order] == sorted(values)


@given(st.binary(), st.integers(min_value=0, max_value=2**32 - 1))
def test_murmur_range(data, seed):
    h = murmur3_32(data, seed)
    assert 0 <= h <= 0xFFFFFFFF
    assert h == murmur3_32(bytearray(data), seed)