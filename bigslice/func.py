"""Registered slice-building functions and invocations of them.

Functions are registered with :func:`func` in a process-wide registry.
Registration order is deterministic, so a registry index names the same
function in every process that runs the same program. An
:class:`Invocation` records a function's index and arguments so that
the call can be repeated elsewhere.
"""

from __future__ import annotations

import dataclasses
import inspect
import itertools
import threading
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

__all__ = [
    "FuncValue",
    "Invocation",
    "func",
    "func_locations",
    "func_locations_diff",
]

_registry_lock = threading.Lock()
_funcs: list["FuncValue"] = []

_invocation_lock = threading.Lock()
_invocation_index = itertools.count(1)

_NILLABLE_BUILTINS = (list, dict, set, frozenset, bytearray)

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

_CO_VARARGS = 0x04
_CO_VARKEYWORDS = 0x08


def _type_repr(tp: Any) -> str:
    if isinstance(tp, type) and typing.get_origin(tp) is None:
        return tp.__qualname__
    return repr(tp)


def _is_union(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    union_type = getattr(types, "UnionType", None)
    return origin is typing.Union or (union_type is not None and origin is union_type)


def _is_interface(tp: Any) -> bool:
    """Tell whether ``tp`` is an abstract class or a protocol."""
    if not isinstance(tp, type):
        return False
    return inspect.isabstract(tp) or bool(getattr(tp, "_is_protocol", False))


def _nil_assignable(tp: Any) -> bool:
    """Tell whether None is an acceptable value for annotation ``tp``."""
    if tp is Any or tp is object or tp is type(None) or tp is None:
        return True
    if _is_union(tp):
        return any(_nil_assignable(arg) for arg in typing.get_args(tp))
    origin = typing.get_origin(tp)
    if origin is not None:
        tp = origin
    if not isinstance(tp, type):
        return True
    if issubclass(tp, _NILLABLE_BUILTINS):
        return True
    return _is_interface(tp)


def _matches(value: Any, tp: Any) -> bool:
    """Tell whether ``value`` may be passed where ``tp`` is expected."""
    if tp is Any or tp is object:
        return True
    if _is_union(tp):
        return any(_matches(value, arg) for arg in typing.get_args(tp))
    origin = typing.get_origin(tp)
    if origin is typing.Literal:
        return value in typing.get_args(tp)
    if origin is not None:
        tp = origin
    if tp is None:
        tp = type(None)
    if not isinstance(tp, type):
        return True
    if tp is int and isinstance(value, bool):
        return False
    try:
        return isinstance(value, tp)
    except TypeError:
        # Protocols that cannot be checked at run time accept anything.
        return True


def _code_target(fn: Callable[..., Any]) -> tuple[types.FunctionType, int]:
    """Return the plain function behind ``fn`` and how many leading parameters are bound."""
    if isinstance(fn, types.MethodType) and isinstance(fn.__func__, types.FunctionType):
        return fn.__func__, 1
    if isinstance(fn, types.FunctionType):
        return fn, 0
    call = getattr(type(fn), "__call__", None)
    if isinstance(call, types.FunctionType):
        return call, 1
    raise TypeError(f"func: cannot inspect the parameters of {fn!r}")


def _resolve(annotation: Any, namespace: dict[str, Any]) -> Any:
    """Resolve an annotation kept as text by looking up a plain name."""
    if not isinstance(annotation, str):
        return annotation
    name = annotation.strip()
    if name.isidentifier():
        if name in namespace:
            return namespace[name]
        return _BUILTIN_TYPES.get(name, Any)
    return Any


def _parameter_types(fn: Callable[..., Any]) -> tuple[Any, ...]:
    target, bound = _code_target(fn)
    code = target.__code__
    argcount = code.co_argcount
    kwonly = code.co_kwonlyargcount
    names = code.co_varnames
    if code.co_flags & _CO_VARARGS:
        raise TypeError(
            f"func: variadic parameter {names[argcount + kwonly]!r} is not supported"
        )
    if code.co_flags & _CO_VARKEYWORDS:
        raise TypeError(
            f"func: variadic parameter {names[argcount + kwonly]!r} is not supported"
        )
    if kwonly:
        raise TypeError(f"func: keyword-only parameter {names[argcount]!r} is not supported")
    annotations = getattr(target, "__annotations__", None) or {}
    namespace = getattr(target, "__globals__", {})
    return tuple(
        _resolve(annotations.get(name, Any), namespace) for name in names[bound:argcount]
    )


@dataclass(frozen=True)
class FuncValue:
    """A registered function, as returned by :func:`func`."""

    fn: Callable[..., Any]
    arg_types: tuple[Any, ...]
    index: int
    is_exclusive: bool = False
    file: str = ""
    line: int = 0

    def exclusive(self) -> "FuncValue":
        """Return a copy of this function that requires exclusive machines."""
        return dataclasses.replace(self, is_exclusive=True)

    def num_in(self) -> int:
        """Return the number of arguments the function takes."""
        return len(self.arg_types)

    def in_type(self, i: int) -> Any:
        """Return the annotated type of argument ``i``."""
        return self.arg_types[i]

    def _typecheck(self, args: Sequence[Any]) -> None:
        if len(args) != len(self.arg_types):
            raise TypeError(
                f"wrong number of arguments: function takes {len(self.arg_types)} "
                f"arguments, got {len(args)}"
            )
        for i, (value, expect) in enumerate(zip(args, self.arg_types)):
            if value is None:
                if not _nil_assignable(expect):
                    raise TypeError(
                        f"wrong type for argument {i}: {_type_repr(expect)} cannot be None"
                    )
                continue
            if _matches(value, expect):
                continue
            have = type(value).__qualname__
            if _is_interface(expect):
                raise TypeError(
                    f"wrong type for argument {i}: type {have} does not implement "
                    f"interface {_type_repr(expect)}"
                )
            raise TypeError(
                f"wrong type for argument {i}: expected {_type_repr(expect)}, got {have}"
            )

    def invocation(self, location: str, *args: Any) -> "Invocation":
        """Return an invocation of this function with ``args``.

        Raises TypeError if the arguments do not match in type or number.
        """
        self._typecheck(args)
        with _invocation_lock:
            index = next(_invocation_index)
        return Invocation(
            index=index,
            func=self.index,
            args=tuple(args),
            exclusive=self.is_exclusive,
            location=location,
        )

    def apply(self, *args: Any) -> Any:
        """Call the function with ``args`` and return the slice it builds.

        Raises TypeError if the arguments do not match in type or number.
        """
        self._typecheck(args)
        return self.fn(*args)


def func(fn: Callable[..., Any]) -> FuncValue:
    """Register ``fn`` and return it as a :class:`FuncValue`.

    Argument types are taken from the function's annotations; an
    unannotated parameter accepts anything.
    """
    if not callable(fn):
        raise TypeError(f"func: argument is a {type(fn).__name__}, not a function")
    arg_types = _parameter_types(fn)
    frame = inspect.currentframe()
    try:
        caller = frame.f_back if frame is not None else None
        file = caller.f_code.co_filename if caller is not None else ""
        line = caller.f_lineno if caller is not None else 0
    finally:
        del frame
    with _registry_lock:
        value = FuncValue(fn=fn, arg_types=arg_types, index=len(_funcs), file=file, line=line)
        _funcs.append(value)
    return value


def func_locations() -> list[str]:
    """Return ``file:line`` of each registered function, in registry order."""
    with _registry_lock:
        return [f"{f.file}:{f.line}" for f in _funcs]


@dataclass(frozen=True)
class Invocation:
    """A call of a registered function that can be repeated elsewhere.

    ``index`` is unique within the process and always at least 1;
    ``func`` is the registry index of the function.
    """

    index: int
    func: int
    args: tuple = field(default_factory=tuple)
    exclusive: bool = False
    location: str = ""

    def __str__(self) -> str:
        args = " ".join(str(arg) for arg in self.args)
        return f"{self.location}({self.func}, {self.index}) {args}"

    def invoke(self) -> Any:
        """Call the invoked function with the recorded arguments."""
        with _registry_lock:
            if not 0 <= self.func < len(_funcs):
                raise LookupError(f"invocation: no function with index {self.func}")
            fv = _funcs[self.func]
        return fv.apply(*self.args)


_NONE, _ADD, _DEL = 0, 1, 2


def func_locations_diff(lhs: Optional[Sequence[str]], rhs: Optional[Sequence[str]]) -> list[str]:
    """Return a unified diff of two location lists, one entry per line.

    Unchanged entries appear as is, removed ones prefixed with ``"- "``
    and added ones with ``"+ "``. Identical lists give an empty list.
    """
    lhs = list(lhs or ())
    rhs = list(rhs or ())
    rows, cols = len(lhs) + 1, len(rhs) + 1
    edit = [[_NONE] * cols for _ in range(rows)]
    cost = [[0] * cols for _ in range(rows)]
    for i in range(1, rows):
        edit[i][0], cost[i][0] = _DEL, i
    for j in range(1, cols):
        edit[0][j], cost[0][j] = _ADD, j
    for i in range(1, rows):
        for j in range(1, cols):
            if lhs[i - 1] == rhs[j - 1]:
                cost[i][j] = cost[i - 1][j - 1]
            elif cost[i - 1][j] < cost[i][j - 1]:
                edit[i][j], cost[i][j] = _DEL, cost[i - 1][j] + 1
            else:
                edit[i][j], cost[i][j] = _ADD, cost[i][j - 1] + 1

    diff: list[str] = []
    differ = False
    i, j = len(lhs), len(rhs)
    while i > 0 or j > 0:
        step = edit[i][j]
        if step == _NONE:
            diff.append(lhs[i - 1])
            i -= 1
            j -= 1
        elif step == _ADD:
            diff.append("+ " + rhs[j - 1])
            j -= 1
            differ = True
        else:
            diff.append("- " + lhs[i - 1])
            i -= 1
            differ = True
    if not differ:
        return []
    diff.reverse()
    return diff