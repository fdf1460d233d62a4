"""Typed, columnar frames: equal-length columns forming a logical table.

A :class:`Frame` is a window (offset, length, capacity) over a set of
shared column lists. Slicing a frame shares the underlying columns, so
writes through one view are visible through every other view of the
same columns.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Callable, Iterable, MutableSequence, Optional, Sequence, TextIO

from .codec import Decoder, Encoder
from .ops import Ops, make_slice_ops
from .zero import zero_range, zero_value

__all__ = [
    "Schema",
    "Frame",
    "EMPTY",
    "make",
    "slices",
    "copy",
    "append_frame",
    "compatible",
]


def _type_name(elem_type: Any) -> str:
    return getattr(elem_type, "__name__", None) or repr(elem_type)


@dataclass(frozen=True)
class Schema:
    """Column types of a frame, and how many leading columns form its key."""

    types: tuple = ()
    prefix: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", tuple(self.types))
        if self.prefix < 0 or (self.types and self.prefix > len(self.types)):
            raise ValueError(
                f"schema: prefix {self.prefix} is invalid for {len(self.types)} columns"
            )

    def num_out(self) -> int:
        """Return the number of columns."""
        return len(self.types)

    def out(self, i: int) -> Any:
        """Return the type of column ``i``."""
        return self.types[i]


@dataclass(frozen=True)
class _Column:
    elem_type: Any
    data: list
    ops: Ops


def _new_column(elem_type: Any, data: list) -> _Column:
    return _Column(elem_type, data, make_slice_ops(elem_type, data))


class Frame:
    """A window over zero or more typed, equal-length columns.

    ``Frame()`` is the zero frame, which has no columns at all; use
    :func:`make` or :func:`slices` to build frames holding data.
    """

    __slots__ = ("_columns", "_off", "_len", "_cap", "_prefix")

    def __init__(self) -> None:
        self._columns: Optional[tuple[_Column, ...]] = None
        self._off = 0
        self._len = 0
        self._cap = 0
        self._prefix = 1

    @classmethod
    def _build(
        cls, columns: tuple[_Column, ...], off: int, length: int, cap: int, prefix: int
    ) -> "Frame":
        f = cls()
        f._columns = columns
        f._off = off
        f._len = length
        f._cap = cap
        f._prefix = prefix
        return f

    @property
    def _cols(self) -> tuple[_Column, ...]:
        return self._columns or ()

    def is_zero(self) -> bool:
        """Tell whether this is the zero frame."""
        return self._columns is None

    def num_out(self) -> int:
        """Return the number of columns."""
        return len(self._cols)

    def out(self, i: int) -> Any:
        """Return the element type of column ``i``."""
        return self._cols[i].elem_type

    def num_prefix(self) -> int:
        """Return the number of leading columns that form the key."""
        return self._prefix

    def __len__(self) -> int:
        return self._len

    def cap(self) -> int:
        """Return the frame's capacity."""
        return self._cap

    def slice(self, i: int, j: int) -> "Frame":
        """Return the frame ``f[i:j]``, sharing columns with this one."""
        if i < 0 or j < i or j > self._cap:
            raise IndexError(f"frame.slice: slice index {i}:{j} out of bounds for slice {self}")
        return Frame._build(self._columns, self._off + i, j - i, self._cap - i, self._prefix)

    def _grow(self, need: int) -> tuple["Frame", int, int]:
        i0 = self._len
        i1 = i0 + need
        if i1 < i0:
            raise ValueError("frame.grow: negative growth")
        m = self._cap
        if i1 <= m:
            return self.slice(0, i1), i0, i1
        if m == 0:
            m = need
        else:
            while m < i1:
                m += m if i0 < 1024 else m // 4
        g = make(self, i1, m)
        copy(g, self)
        return g, i0, i1

    def grow(self, n: int) -> "Frame":
        """Return a frame of length ``len(self) + n`` holding this frame's rows."""
        return self._grow(n)[0]

    def ensure(self, n: int) -> "Frame":
        """Return ``slice(0, n)``, growing the frame if needed."""
        if self._len == n:
            return self
        if n <= self._cap:
            return self.slice(0, n)
        return self.grow(n - self._len)

    def value(self, i: int) -> list:
        """Return a copy of column ``i`` as a list."""
        return self._cols[i].data[self._off : self._off + self._len]

    def values(self) -> list[list]:
        """Return copies of all columns."""
        return [self.value(i) for i in range(self.num_out())]

    def index(self, col: int, i: int) -> Any:
        """Return row ``i`` of column ``col``."""
        self._check_row(i)
        return self._cols[col].data[self._off + i]

    def set_index(self, col: int, i: int, value: Any) -> None:
        """Set row ``i`` of column ``col`` to ``value``."""
        self._check_row(i)
        self._cols[col].data[self._off + i] = value

    def _check_row(self, i: int) -> None:
        if not 0 <= i < self._cap:
            raise IndexError(f"frame: row {i} out of bounds for {self}")

    def prefixed(self, prefix: int) -> "Frame":
        """Return this frame with ``prefix`` key columns."""
        if prefix > self.num_out() or prefix < 0:
            raise ValueError(
                f"frame.prefixed: prefix {prefix} is invalid for frame with "
                f"{self.num_out()} columns"
            )
        return Frame._build(self._columns, self._off, self._len, self._cap, prefix)

    def swap(self, i: int, j: int) -> None:
        """Swap rows ``i`` and ``j`` in every column."""
        for column in self._cols:
            column.ops.swap(self._off + i, self._off + j)

    def zero(self) -> None:
        """Set every row of every column to its type's zero value."""
        for column in self._cols:
            zero_range(column.data, column.elem_type, self._off, self._off + self._len)

    def _key_columns(self) -> tuple[_Column, ...]:
        keys = self._cols[: self._prefix]
        if not keys:
            raise ValueError(f"frame: {self} has no key columns")
        return keys

    def _op(self, column: _Column, name: str) -> Callable[..., Any]:
        op = getattr(column.ops, name)
        if op is None:
            raise TypeError(f"frame: no {name} operation for type {_type_name(column.elem_type)}")
        return op

    def less(self, i: int, j: int) -> bool:
        """Tell whether row ``i`` sorts before row ``j`` by the key columns."""
        *leading, last = self._key_columns()
        a, b = i + self._off, j + self._off
        for column in leading:
            less = self._op(column, "less")
            if less(a, b):
                return True
            if less(b, a):
                return False
        return bool(self._op(last, "less")(a, b))

    def hash(self, i: int) -> int:
        """Return the 32-bit hash of row ``i``'s key columns with seed 0."""
        return self.hash_with_seed(i, 0)

    def hash_with_seed(self, i: int, seed: int) -> int:
        """Return the 32-bit seeded hash of row ``i``'s key columns."""
        result = 0
        for column in self._key_columns():
            result ^= self._op(column, "hash_with_seed")(i + self._off, seed)
        return result

    def has_codec(self, col: int) -> bool:
        """Tell whether column ``col`` has a type-specific codec."""
        return self._cols[col].ops.encode is not None

    def encode(self, col: int, encoder: Encoder) -> None:
        """Encode the rows of column ``col`` with its type-specific codec."""
        self._op(self._cols[col], "encode")(encoder, self._off, self._off + self._len)

    def decode(self, col: int, decoder: Decoder) -> None:
        """Decode into the rows of column ``col`` with its type-specific codec."""
        self._op(self._cols[col], "decode")(decoder, self._off, self._off + self._len)

    def __str__(self) -> str:
        types = ",".join(_type_name(c.elem_type) for c in self._cols)
        return f"frame[{self._len},{self._cap}]{types}"

    __repr__ = __str__

    def write_tab(self, out: TextIO) -> None:
        """Write the frame as an aligned table, a header of types first."""
        rows = [[_type_name(c.elem_type) for c in self._cols]]
        rows.extend(
            [_format(self.index(col, i)) for col in range(self.num_out())]
            for i in range(self._len)
        )
        out.write(_tabulate(rows))

    def tab_string(self) -> str:
        """Return the frame as an aligned table."""
        buf = io.StringIO()
        self.write_tab(buf)
        return buf.getvalue()


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "<nil>"
    return str(value)


def _tabulate(rows: Sequence[Sequence[str]], minwidth: int = 4, padding: int = 1) -> str:
    ncells = max((len(row) - 1 for row in rows), default=0)
    widths = []
    for k in range(ncells):
        cells = [len(row[k]) + padding for row in rows if len(row) > k + 1]
        widths.append(max([minwidth, *cells]))
    lines = []
    for row in rows:
        parts = [cell.ljust(widths[k]) for k, cell in enumerate(row[:-1])]
        if row:
            parts.append(row[-1])
        lines.append("".join(parts) + "\n")
    return "".join(lines)


EMPTY = Frame._build((), 0, 0, 0, 1)


def _schema_prefix(types: Any) -> int:
    if isinstance(types, Frame):
        return types.num_prefix()
    return types.prefix


def make(types: Any, length: int, capacity: int) -> Frame:
    """Return a zero-filled frame with the column types of ``types``.

    ``types`` is a :class:`Schema` or a :class:`Frame`.
    """
    if length < 0 or length > capacity:
        raise ValueError("frame.make: invalid len, cap")
    columns = tuple(
        _new_column(t, [zero_value(t) for _ in range(capacity)])
        for t in (types.out(i) for i in range(types.num_out()))
    )
    return Frame._build(columns, 0, length, capacity, _schema_prefix(types))


def slices(*args: Iterable[Any], types: Optional[Sequence[Any]] = None) -> Frame:
    """Return a frame whose columns are the given sequences.

    Lists are shared, not copied. Element types come from ``types`` or,
    when it is omitted, from each column's first element.
    """
    if not args:
        return EMPTY
    if types is not None and len(types) != len(args):
        raise ValueError(f"frame.slices: {len(types)} types for {len(args)} columns")
    columns = []
    length = None
    for k, col in enumerate(args):
        if isinstance(col, (str, bytes)) or not isinstance(col, (Sequence, MutableSequence)):
            raise TypeError(f"frame.slices: non-sequence argument {type(col).__name__}")
        data = col if isinstance(col, list) else list(col)
        if length is None:
            length = len(data)
        elif len(data) != length:
            raise ValueError("frame.slices: columns of unequal length")
        if types is not None:
            elem_type = types[k]
        elif data:
            elem_type = type(data[0])
        else:
            raise TypeError("frame.slices: cannot infer the type of an empty column")
        columns.append(_new_column(elem_type, data))
    return Frame._build(tuple(columns), 0, length, length, 1)


def compatible(f: Frame, g: Frame) -> bool:
    """Tell whether two frames have the same column types."""
    if f.num_out() != g.num_out():
        return False
    return all(f.out(i) == g.out(i) for i in range(f.num_out()))


def copy(dst: Frame, src: Frame) -> int:
    """Copy rows of ``src`` into ``dst`` until either runs out; return the count."""
    if not compatible(dst, src):
        raise ValueError(f"frame.copy: incompatible frames dst={dst} src={src}")
    n = min(len(dst), len(src))
    if n == 0:
        return 0
    for d, s in zip(dst._cols, src._cols):
        d.data[dst._off : dst._off + n] = s.data[src._off : src._off + n]
    return n


def append_frame(dst: Frame, src: Frame) -> Frame:
    """Return ``dst`` with the rows of ``src`` appended, growing as needed."""
    if dst.is_zero():
        dst = make(src, len(src), len(src))
        i0, i1 = 0, len(src)
    else:
        dst, i0, i1 = dst._grow(len(src))
    copy(dst.slice(i0, i1), src)
    return dst