"""Per-type column operations: ordering, hashing and optional codecs.

Operations are registered per element type with :func:`register_ops`. A
registration is a function that takes a column (a mutable sequence of
values of that type) and returns an :class:`Ops` bound to that column.
"""

from __future__ import annotations

import dataclasses
import inspect
import struct
import threading
from dataclasses import dataclass
from typing import Any, Callable, MutableSequence, Optional

__all__ = [
    "Ops",
    "register_ops",
    "make_slice_ops",
    "can_compare",
    "can_hash",
    "murmur3_32",
    "hash32",
    "hash64",
]

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


@dataclass
class Ops:
    """Operations on one column.

    ``less(i, j)`` orders two rows, ``hash_with_seed(i, seed)`` returns a
    32-bit hash of a row. ``encode(encoder, i, j)`` and
    ``decode(decoder, i, j)`` are an optional codec for rows ``i:j`` and
    must be given together. ``swap(i, j)`` is filled in generically by
    :func:`make_slice_ops`.
    """

    less: Optional[Callable[[int, int], bool]] = None
    hash_with_seed: Optional[Callable[[int, int], int]] = None
    encode: Optional[Callable[[Any, int, int], None]] = None
    decode: Optional[Callable[[Any, int, int], None]] = None
    swap: Optional[Callable[[int, int], None]] = None


_lock = threading.Lock()
_make_ops: dict[Any, Callable[[MutableSequence[Any]], Ops]] = {}
_locations: dict[Any, str] = {}


def _type_name(elem_type: Any) -> str:
    return getattr(elem_type, "__qualname__", None) or repr(elem_type)


def _caller_location() -> Optional[str]:
    frame = inspect.currentframe()
    try:
        caller = frame.f_back.f_back if frame and frame.f_back else None
        if caller is None:
            return None
        return f"{caller.f_code.co_filename}:{caller.f_lineno}"
    finally:
        del frame


def register_ops(elem_type: Any, make: Callable[[MutableSequence[Any]], Ops]) -> None:
    """Register ``make`` as the ops factory for columns of ``elem_type``.

    Raises TypeError if ``make`` is not callable and ValueError if ops are
    already registered for the type.
    """
    if not callable(make):
        raise TypeError(
            f"register_ops: bad ops factory {make!r}; expected a callable taking a column"
        )
    location = _caller_location()
    with _lock:
        if elem_type in _make_ops:
            where = _locations.get(elem_type, "<unknown>")
            raise ValueError(
                f"register_ops: ops already registered for type "
                f"{_type_name(elem_type)} at {where}"
            )
        _make_ops[elem_type] = make
        if location is not None:
            _locations[elem_type] = location


def _swapper(column: MutableSequence[Any]) -> Callable[[int, int], None]:
    def swap(i: int, j: int) -> None:
        column[i], column[j] = column[j], column[i]

    return swap


def make_slice_ops(elem_type: Any, column: MutableSequence[Any]) -> Ops:
    """Return the ops bound to ``column``; empty ops if none are registered."""
    with _lock:
        make = _make_ops.get(elem_type)
    if make is None:
        return Ops(swap=_swapper(column))
    ops = make(column)
    if not isinstance(ops, Ops):
        raise TypeError(
            f"ops factory for type {_type_name(elem_type)} returned {type(ops).__name__}, not Ops"
        )
    if (ops.encode is None) != (ops.decode is None):
        raise ValueError("encode and decode not defined together")
    return dataclasses.replace(ops, swap=_swapper(column))


def can_compare(elem_type: Any) -> bool:
    """Tell whether values of ``elem_type`` can be ordered."""
    return make_slice_ops(elem_type, []).less is not None


def can_hash(elem_type: Any) -> bool:
    """Tell whether values of ``elem_type`` can be hashed."""
    return make_slice_ops(elem_type, []).hash_with_seed is not None


def _rotl32(x: int, r: int) -> int:
    return ((x << r) | (x >> (32 - r))) & _MASK32


def _mix_k(k: int) -> int:
    k = (k * 0xCC9E2D51) & _MASK32
    k = _rotl32(k, 15)
    return (k * 0x1B873593) & _MASK32


def murmur3_32(data: bytes, seed: int = 0) -> int:
    """Return the 32-bit MurmurHash3 (x86 variant) of ``data``."""
    data = bytes(data)
    h = seed & _MASK32
    body_len = len(data) - len(data) % 4
    for (k,) in struct.iter_unpack("<I", data[:body_len]):
        h ^= _mix_k(k)
        h = _rotl32(h, 13)
        h = (h * 5 + 0xE6546B64) & _MASK32
    tail = data[body_len:]
    if tail:
        h ^= _mix_k(int.from_bytes(tail, "little"))
    h ^= len(data) & _MASK32
    h ^= h >> 16
    h = (h * 0x85EBCA6B) & _MASK32
    h ^= h >> 13
    h = (h * 0xC2B2AE35) & _MASK32
    h ^= h >> 16
    return h


def hash32(x: int, seed: int) -> int:
    """Hash the low 32 bits of ``x`` as little-endian bytes."""
    return murmur3_32((x & _MASK32).to_bytes(4, "little"), seed)


def hash64(x: int, seed: int) -> int:
    """Hash the low 64 bits of ``x`` as little-endian bytes."""
    return murmur3_32((x & _MASK64).to_bytes(8, "little"), seed)


def _float_bits(value: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", value))[0]


def _ordered(column: MutableSequence[Any]) -> Callable[[int, int], bool]:
    return lambda i, j: column[i] < column[j]


def _str_ops(column: MutableSequence[str]) -> Ops:
    return Ops(
        less=_ordered(column),
        hash_with_seed=lambda i, seed: murmur3_32(
            column[i].encode("utf-8", "surrogatepass"), seed
        ),
    )


def _bytes_ops(column: MutableSequence[bytes]) -> Ops:
    return Ops(
        less=_ordered(column),
        hash_with_seed=lambda i, seed: murmur3_32(column[i], seed),
    )


def _int_ops(column: MutableSequence[int]) -> Ops:
    return Ops(
        less=_ordered(column),
        hash_with_seed=lambda i, seed: hash64(column[i], seed),
    )


def _float_ops(column: MutableSequence[float]) -> Ops:
    return Ops(
        less=_ordered(column),
        hash_with_seed=lambda i, seed: hash64(_float_bits(column[i]), seed),
    )


def _bool_ops(column: MutableSequence[bool]) -> Ops:
    return Ops(
        less=lambda i, j: not column[i] and bool(column[j]),
        hash_with_seed=lambda i, seed: ((seed + 1) & _MASK32) if column[i] else seed & _MASK32,
    )


def _unit_ops(column: MutableSequence[None]) -> Ops:
    return Ops(
        less=lambda i, j: False,
        hash_with_seed=lambda i, seed: seed & _MASK32,
    )


register_ops(str, _str_ops)
register_ops(bytes, _bytes_ops)
register_ops(int, _int_ops)
register_ops(float, _float_ops)
register_ops(bool, _bool_ops)
register_ops(type(None), _unit_ops)