"""Session state shared by column encoders and decoders."""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

__all__ = ["Session", "Encoder", "Decoder", "fresh_key"]

_keys = itertools.count(1)
_keys_lock = threading.Lock()


def fresh_key() -> int:
    """Return a key, unique in this process, for storing session state."""
    with _keys_lock:
        return next(_keys)


class Session:
    """A key-value store for state kept across a codec session."""

    def __init__(self) -> None:
        self._states: dict[int, Any] = {}
        self._states_lock = threading.Lock()

    def state(self, key: int, factory: Optional[Callable[[], Any]] = None) -> tuple[Any, bool]:
        """Return the state for ``key`` and whether it was just created.

        The first time a key is seen its state is made by ``factory``
        (or is None without one); later calls return the same object.
        """
        with self._states_lock:
            if key in self._states:
                return self._states[key], False
            value = factory() if factory is not None else None
            self._states[key] = value
            return value, True


class Encoder(Session, ABC):
    """Writes values to a stream, with session state."""

    @abstractmethod
    def encode(self, value: Any) -> None:
        """Encode ``value`` into the stream."""


class Decoder(Session, ABC):
    """Reads values from a stream, with session state."""

    @abstractmethod
    def decode(self) -> Any:
        """Decode and return the next value from the stream."""