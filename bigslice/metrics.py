"""Metrics that are declared once and aggregated in scopes.

Metrics (such as a :class:`Counter`) are declared with registration
functions like :func:`new_counter`. Every operation on a metric happens
in a :class:`Scope`, which holds one instance of each metric used in it.
Scopes can be merged, reset and serialized.

User code run inside :func:`scoped_context` can find its scope with
:func:`context_scope`. Metrics must not be declared concurrently with
their use in scopes being serialized.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Optional

__all__ = [
    "Metric",
    "Counter",
    "Scope",
    "new_counter",
    "scoped_context",
    "context_scope",
]


class Metric(ABC):
    """A registered metric: it makes, merges and serializes its instances."""

    @abstractmethod
    def metric_id(self) -> int:
        """Return the metric's registered id."""

    @abstractmethod
    def _new_instance(self) -> Any:
        """Return a fresh instance, as held by a scope."""

    @abstractmethod
    def _merge(self, into: Any, other: Any) -> None:
        """Merge instance ``other`` into instance ``into``."""

    @abstractmethod
    def _encode_instance(self, instance: Any) -> Any:
        """Return a JSON-serializable form of ``instance``."""

    @abstractmethod
    def _decode_instance(self, obj: Any) -> Any:
        """Rebuild an instance from its serialized form."""


class _ZeroMetric(Metric):
    """Occupies id 0 so that unregistered metrics are caught."""

    def metric_id(self) -> int:
        return 0

    def _new_instance(self) -> Any:
        return None

    def _merge(self, into: Any, other: Any) -> None:
        pass

    def _encode_instance(self, instance: Any) -> Any:
        return None

    def _decode_instance(self, obj: Any) -> Any:
        return None


_registry_lock = threading.Lock()
_registry: list[Metric] = [_ZeroMetric()]


def _metrics() -> list[Metric]:
    with _registry_lock:
        return list(_registry)


class _CounterValue:
    __slots__ = ("_value", "_lock")

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def incr(self, n: int) -> None:
        with self._lock:
            self._value += n

    def load(self) -> int:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class Counter(Metric):
    """A counter metric holding an integer that can be added to."""

    ident: int

    def metric_id(self) -> int:
        return self.ident

    def value(self, scope: "Scope") -> int:
        """Return the counter's current value in ``scope``."""
        return scope._instance(self).load()

    def incr(self, scope: "Scope", n: int) -> None:
        """Add ``n`` to the counter's value in ``scope``."""
        scope._instance(self).incr(n)

    def _new_instance(self) -> _CounterValue:
        return _CounterValue()

    def _merge(self, into: _CounterValue, other: _CounterValue) -> None:
        into.incr(other.load())

    def _encode_instance(self, instance: _CounterValue) -> int:
        return instance.load()

    def _decode_instance(self, obj: Any) -> _CounterValue:
        if isinstance(obj, bool) or not isinstance(obj, int):
            raise ValueError(f"metrics: invalid counter value {obj!r}")
        return _CounterValue(obj)


def new_counter() -> Counter:
    """Create, register and return a new counter."""
    with _registry_lock:
        counter = Counter(len(_registry))
        _registry.append(counter)
    return counter


class Scope:
    """A collection of metric instances."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._instances: dict[int, Any] = {}

    def _load(self, metric: Metric) -> Any:
        with self._lock:
            return self._instances.get(metric.metric_id())

    def _store(self, metric: Metric, instance: Any) -> None:
        with self._lock:
            if instance is None:
                self._instances.pop(metric.metric_id(), None)
            else:
                self._instances[metric.metric_id()] = instance

    def _instance(self, metric: Metric) -> Any:
        with self._lock:
            instance = self._instances.get(metric.metric_id())
            if instance is None:
                instance = metric._new_instance()
                if instance is None:
                    raise RuntimeError("metric: metric returned nil instance")
                self._instances[metric.metric_id()] = instance
            return instance

    def merge(self, other: "Scope") -> None:
        """Merge the instances of ``other`` into this scope."""
        for metric in _metrics():
            instance = other._load(metric)
            if instance is None:
                continue
            metric._merge(self._instance(metric), instance)

    def reset(self, other: Optional["Scope"] = None) -> None:
        """Reset this scope to ``other``, or to empty if it is None."""
        if other is None:
            with self._lock:
                self._instances = {}
            return
        for metric in _metrics():
            self._store(metric, other._load(metric))

    def encode(self) -> bytes:
        """Serialize the scope's instances."""
        encoded = []
        for metric in _metrics():
            instance = self._load(metric)
            encoded.append(None if instance is None else metric._encode_instance(instance))
        return json.dumps(encoded, separators=(",", ":")).encode("utf-8")

    def decode(self, data: bytes) -> None:
        """Replace the scope's instances with those serialized in ``data``.

        Raises ValueError if the data are malformed or were written with
        a different set of metrics.
        """
        encoded = json.loads(data)
        if not isinstance(encoded, list):
            raise ValueError("metrics: serialized scope is not a list")
        metrics = _metrics()
        if len(encoded) != len(metrics):
            raise ValueError(
                f"incompatible metric set: remote: {len(encoded)}, local: {len(metrics)}"
            )
        decoded = [
            None if obj is None else metric._decode_instance(obj)
            for metric, obj in zip(metrics, encoded)
        ]
        for metric, instance in zip(metrics, decoded):
            self._store(metric, instance)


_current_scope: contextvars.ContextVar[Optional[Scope]] = contextvars.ContextVar(
    "bigslice_metrics_scope", default=None
)


@contextlib.contextmanager
def scoped_context(scope: Scope) -> Iterator[Scope]:
    """Make ``scope`` the current scope for the duration of the block."""
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        _current_scope.reset(token)


def context_scope() -> Scope:
    """Return the current scope; raise LookupError if there is none."""
    scope = _current_scope.get()
    if scope is None:
        raise LookupError("metrics: context does not provide metrics")
    return scope