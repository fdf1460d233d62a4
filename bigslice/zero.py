"""Zero values for element types, and zeroing of sequences in place."""

from __future__ import annotations

import array
import dataclasses
import functools
import typing
from collections.abc import MutableSequence
from typing import Any, Callable

__all__ = ["zero_value", "zero_slice", "zero_range"]

_SCALARS: dict[Any, Any] = {
    int: 0,
    float: 0.0,
    complex: 0j,
    bool: False,
    str: "",
    bytes: b"",
}

_BUILTIN_TYPES: dict[str, type] = {
    tp.__name__: tp
    for tp in (
        int,
        float,
        complex,
        bool,
        str,
        bytes,
        bytearray,
        list,
        dict,
        set,
        frozenset,
        tuple,
        object,
        type,
        range,
        memoryview,
        slice,
    )
}


def _constant(value: Any) -> Callable[[], Any]:
    return lambda: value


def _field_type(annotation: Any) -> Any:
    """Resolve a field annotation; names kept as text resolve to builtins only."""
    if isinstance(annotation, str):
        return _BUILTIN_TYPES.get(annotation.strip(), Any)
    return annotation


@functools.lru_cache(maxsize=None)
def _factory(elem_type: Any) -> Callable[[], Any]:
    if elem_type in _SCALARS:
        return _constant(_SCALARS[elem_type])
    if typing.get_origin(elem_type) is tuple:
        args = typing.get_args(elem_type)
        if len(args) == 2 and args[1] is Ellipsis:
            return _constant(None)
        makers = [_factory(arg) for arg in args if arg != ()]
        return lambda: tuple(make() for make in makers)
    if isinstance(elem_type, type) and dataclasses.is_dataclass(elem_type):
        makers = {
            field.name: _factory(_field_type(field.type))
            for field in dataclasses.fields(elem_type)
            if field.init
        }
        return lambda: elem_type(**{name: make() for name, make in makers.items()})
    # References, containers, unions and other classes have no value.
    return _constant(None)


def zero_value(elem_type: Any) -> Any:
    """Return the zero value of ``elem_type``.

    Numbers, booleans, strings and bytes zero to their empty values;
    fixed-length tuple types to a tuple of zeros; dataclasses to an
    instance whose fields are zero; everything else to None.
    """
    try:
        make = _factory(elem_type)
    except TypeError:
        return None
    return make()


def zero_range(values: MutableSequence[Any], elem_type: Any, start: int, stop: int) -> None:
    """Set ``values[start:stop]`` to the zero value of ``elem_type``."""
    if not isinstance(values, (MutableSequence, array.array)):
        raise TypeError(f"zero: cannot zero a {type(values).__name__}; expected a mutable sequence")
    if not 0 <= start <= stop <= len(values):
        raise IndexError(f"zero: range {start}:{stop} out of bounds for length {len(values)}")
    replacement = [zero_value(elem_type) for _ in range(stop - start)]
    if isinstance(values, array.array):
        values[start:stop] = array.array(values.typecode, replacement)
    else:
        values[start:stop] = replacement


def zero_slice(values: MutableSequence[Any], elem_type: Any) -> None:
    """Set every element of ``values`` to the zero value of ``elem_type``."""
    zero_range(values, elem_type, 0, len(values))