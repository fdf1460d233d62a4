import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import pytest

from bigslice.func import (
    FuncValue,
    Invocation,
    func,
    func_locations,
    func_locations_diff,
)


@dataclass
class StructA:
    field0: int


@dataclass
class StructB:
    field1: int


class Iface(ABC):
    @abstractmethod
    def method(self) -> None: ...


class IfaceImpl(Iface):
    def method(self) -> None:
        pass


def _nil_args_fn(
    a: int,
    b: str,
    c: list[str],
    d: dict[int, int],
    e: StructA,
    f: Optional[StructB],
    g: object,
    h: Iface,
) -> str:
    return "slice"


fn_nil_args = func(_nil_args_fn)


NIL_CASES = [
    ("all non-None", [0, "", [], {0: 0}, StructA(0), StructB(0), object(), IfaceImpl()], True),
    ("None for types that can be None", [0, "", None, None, StructA(0), None, None, None], True),
    ("None for int", [None, "", [], {0: 0}, StructA(0), StructB(0), object(), IfaceImpl()], False),
    ("None for str", [0, None, [], {0: 0}, StructA(0), StructB(0), object(), IfaceImpl()], False),
    ("None for struct", [0, "", [], {0: 0}, None, StructB(0), object(), IfaceImpl()], False),
]


@pytest.mark.parametrize("name,args,ok", NIL_CASES, ids=[c[0] for c in NIL_CASES])
def test_nil_func_args_invocation(name, args, ok):
    if ok:
        inv = fn_nil_args.invocation("", *args)
        assert inv.func == fn_nil_args.index
        assert inv.args == tuple(args)
    else:
        with pytest.raises(TypeError, match="None"):
            fn_nil_args.invocation("", *args)


@pytest.mark.parametrize("name,args,ok", NIL_CASES, ids=[c[0] for c in NIL_CASES])
def test_nil_func_args_apply(name, args, ok):
    if ok:
        assert fn_nil_args.apply(*args) == "slice"
    else:
        with pytest.raises(TypeError, match="None"):
            fn_nil_args.apply(*args)


@pytest.mark.parametrize(
    "lhs,rhs,diff",
    [
        (None, None, []),
        (["a"], ["a"], []),
        ([], ["a"], ["+ a"]),
        (["a", "b"], ["a"], ["a", "- b"]),
        (["a", "b"], ["b"], ["- a", "b"]),
        (["a"], ["a", "b"], ["a", "+ b"]),
        (["a", "c"], ["a", "b", "c", "d"], ["a", "+ b", "c", "+ d"]),
        (["a", "b", "d"], ["a", "c", "d"], ["a", "- b", "+ c", "d"]),
        (["a", "b", "c"], ["a", "c", "d", "e"], ["a", "- b", "c", "+ d", "+ e"]),
    ],
)
def test_func_locations_diff(lhs, rhs, diff):
    assert func_locations_diff(lhs, rhs) == diff


def test_wrong_number_of_arguments():
    fv = func(lambda x: x)
    with pytest.raises(TypeError, match="wrong number of arguments"):
        fv.apply(1, 2)
    with pytest.raises(TypeError, match="wrong number of arguments"):
        fv.invocation("loc")


def test_wrong_argument_type():
    def build(x: int, y: str) -> str:
        return f"{x}{y}"

    fv = func(build)
    with pytest.raises(TypeError, match="expected int, got str"):
        fv.apply("1", "y")
    with pytest.raises(TypeError, match="argument 1"):
        fv.apply(1, 2)
    with pytest.raises(TypeError):
        fv.apply(True, "y")
    assert fv.apply(1, "y") == "1y"


def test_interface_argument_must_implement():
    def build(h: Iface) -> str:
        return "ok"

    fv = func(build)
    with pytest.raises(TypeError, match="does not implement interface Iface"):
        fv.apply(StructA(1))
    assert fv.apply(IfaceImpl()) == "ok"


def test_func_rejects_non_callable():
    with pytest.raises(TypeError, match="not a function"):
        func(42)


def test_num_in_and_in_type():
    assert fn_nil_args.num_in() == 8
    assert fn_nil_args.in_type(0) is int
    assert fn_nil_args.in_type(4) is StructA


def test_registry_indices_and_locations():
    line = inspect.currentframe().f_lineno
    fv = func(lambda: "x")
    locations = func_locations()
    assert locations[fv.index].endswith(f"test_func.py:{line + 1}")
    assert fv.index > fn_nil_args.index


def test_exclusive_copies():
    fv = func(lambda: "x")
    ex = fv.exclusive()
    assert isinstance(ex, FuncValue)
    assert ex.is_exclusive is True
    assert fv.is_exclusive is False
    assert ex.index == fv.index
    assert ex.invocation("loc").exclusive is True
    assert fv.invocation("loc").exclusive is False


def test_invocation_indices_increase():
    fv = func(lambda: "x")
    first = fv.invocation("a")
    second = fv.invocation("b")
    assert first.index >= 1
    assert second.index > first.index
    assert second.location == "b"


def test_invoke_calls_registered_function():
    def build(x: int, y: int) -> int:
        return x * 10 + y

    fv = func(build)
    inv = fv.invocation("loc", 4, 2)
    assert inv.invoke() == 42


def test_invoke_unknown_function():
    inv = Invocation(index=1, func=10**9, args=())
    with pytest.raises(LookupError):
        inv.invoke()


def test_invocation_str():
    inv = Invocation(index=3, func=1, args=(2, "x"), exclusive=False, location="here")
    assert str(inv) == "here(1, 3) 2 x"