"""Collection of trace events for tasks and invocations.

Events are kept in the Chrome tracing format. Each machine appears as a
process; the evaluator is process 0. Events get virtual thread ids so
that concurrent events are drawn on separate rows, and matching begin
("B") and end ("E") events are coalesced into complete ("X") events
when the trace is written.
"""

from __future__ import annotations

import dataclasses
import threading
import time
from typing import Any, Optional, Sequence, TextIO

from .func import Invocation
from .task import Task
from .trace import Event, Trace

__all__ = ["TidPool", "Tracer", "append_coalesce"]


class TidPool:
    """A pool of virtual thread ids, numbered from 1."""

    def __init__(self) -> None:
        self._available: list[bool] = []

    def acquire(self) -> int:
        """Return the lowest free thread id, growing the pool if needed."""
        for tid, available in enumerate(self._available):
            if available:
                self._available[tid] = False
                return tid + 1
        self._available.append(False)
        return len(self._available)

    def release(self, tid: int) -> None:
        """Make ``tid``, previously acquired, available again."""
        if not 1 <= tid <= len(self._available) or self._available[tid - 1]:
            raise ValueError("releasing unallocated tid")
        self._available[tid - 1] = True


def _copy_event(event: Event) -> Event:
    args = dict(event.args) if event.args is not None else None
    return dataclasses.replace(event, args=args)


def append_coalesce(events: Sequence[Event], new_events: Sequence[Event]) -> list[Event]:
    """Return ``events`` followed by ``new_events`` with begin/end pairs merged.

    A "B" event and the next "E" event become one "X" event lasting at
    least 1; the "E" event's arguments fill in missing ones. Unmatched
    "E" events and a trailing unmatched "B" event are dropped. Neither
    input is modified.
    """
    result = list(events)
    begin = -1
    for event in new_events:
        if event.ph == "B" and begin < 0:
            begin = len(result)
        if event.ph == "E" and begin >= 0:
            merged = result[begin]
            merged.ph = "X"
            merged.dur = event.ts - merged.ts or 1
            if event.args:
                if merged.args is None:
                    merged.args = {}
                for key, value in event.args.items():
                    merged.args.setdefault(key, value)
            # A retry on the same machine becomes a separate event.
            begin = -1
        elif event.ph != "E":
            result.append(_copy_event(event))
    if begin >= 0:
        del result[begin]
    return result


class Tracer:
    """Records trace events for tasks and invocations, per machine."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[Event] = []
        self._task_events: dict[Task, list[Event]] = {}
        self._compile_events: dict[tuple[Optional[str], int], list[Event]] = {}
        self._machine_pids: dict[int, tuple[Any, int]] = {}
        self._tid_pools: dict[int, tuple[Any, TidPool]] = {}
        self._first_event: Optional[int] = None

    def event(self, machine: Any, subject: Any, ph: str, *args: Any) -> None:
        """Record an event of type ``ph`` about ``subject`` on ``machine``.

        ``subject`` is a :class:`Task` or an :class:`Invocation`;
        ``machine`` has an ``addr`` attribute, or is None for the
        evaluator. ``args`` are alternating keys and values.
        """
        if len(args) % 2 != 0:
            raise ValueError("tracer.event: invalid arguments")
        if not isinstance(subject, (Task, Invocation)):
            raise TypeError(f"unsupported subject type {type(subject).__name__}")
        event = Event(ph=ph, args={str(args[i]): args[i + 1] for i in range(0, len(args), 2)})
        with self._lock:
            now = time.monotonic_ns()
            if self._first_event is None:
                self._first_event = now
                event.ts = 0
            else:
                event.ts = (now - self._first_event) // 1000
            if machine is not None:
                event.pid = self._machine_pid(machine, event.ts)
            if isinstance(subject, Task):
                event.name = str(subject.name)
                event.cat = "task"
                history = self._task_events.setdefault(subject, [])
            else:
                event.name = f"{subject.index}[x]" if subject.exclusive else str(subject.index)
                event.cat = "invocation"
                key = (getattr(machine, "addr", None), subject.index)
                history = self._compile_events.setdefault(key, [])
            self._assign_tid(machine, ph, history, event)
            history.append(event)

    def _machine_pid(self, machine: Any, ts: int) -> int:
        entry = self._machine_pids.get(id(machine))
        if entry is not None:
            return entry[1]
        # Pid 0 is reserved for evaluator events.
        pid = len(self._machine_pids) + 1
        self._machine_pids[id(machine)] = (machine, pid)
        self._events.append(
            Event(pid=pid, ts=ts, ph="M", name="process_name", args={"name": machine.addr})
        )
        return pid

    def _assign_tid(self, machine: Any, ph: str, history: list[Event], event: Event) -> None:
        event.tid = 0
        entry = self._tid_pools.get(id(machine))
        if entry is None:
            entry = (machine, TidPool())
            self._tid_pools[id(machine)] = entry
        pool = entry[1]
        if ph == "B":
            event.tid = pool.acquire()
        elif ph == "E" and history and history[-1].ph == "B":
            event.tid = history[-1].tid
            pool.release(event.tid)

    def marshal(self, out: TextIO) -> None:
        """Write the recorded trace to ``out`` in Chrome's tracing format."""
        with self._lock:
            events = [_copy_event(event) for event in self._events]
            for history in self._task_events.values():
                events = append_coalesce(events, history)
            for history in self._compile_events.values():
                events = append_coalesce(events, history)
        Trace(events).encode(out)