"""Tasks: compiled units of computation and their runtime state.

Tasks form graphs through their dependencies. Each task also carries
the state used to coordinate evaluators with an executor: a state value
guarded by a condition variable, and a set of subscribers that are told
whenever the state changes.
"""

from __future__ import annotations

import enum
import io
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, TextIO

from .frame import Schema

__all__ = [
    "TaskLostError",
    "TaskState",
    "TaskDep",
    "TaskName",
    "TaskSubscriber",
    "Task",
]


class TaskLostError(Exception):
    """The task was lost, usually because its machine failed."""

    def __init__(self, message: str = "task was lost") -> None:
        super().__init__(message)


class TaskState(enum.IntEnum):
    """Runtime state of a task; larger values mean further progress.

    Every state greater than OK is an error state.
    """

    INIT = 0
    WAITING = 1
    RUNNING = 2
    OK = 3
    ERR = 4
    LOST = 5

    def __str__(self) -> str:
        return _STATE_NAMES[self]


_STATE_NAMES = {
    TaskState.INIT: "INIT",
    TaskState.WAITING: "WAITING",
    TaskState.RUNNING: "RUNNING",
    TaskState.OK: "OK",
    TaskState.ERR: "ERROR",
    TaskState.LOST: "LOST",
}


@dataclass(frozen=True)
class TaskName:
    """Unique name of a task; tasks with no shards are combiner tasks."""

    inv_index: int = 0
    op: str = ""
    shard: int = 0
    num_shard: int = 0

    def __str__(self) -> str:
        if self.num_shard == 0:
            return f"{self.op}_combiner"
        return f"{self.op}@{self.num_shard}:{self.shard}"

    def is_combiner(self) -> bool:
        """Tell whether the named task is a combiner task."""
        return self.num_shard == 0


@dataclass
class TaskDep:
    """One dependency of a task: a task (or phase) and the partition read."""

    head: Optional["Task"] = None
    partition: int = 0
    expand: bool = False
    combine_key: str = ""

    def num_task(self) -> int:
        """Return the number of tasks this dependency comprises."""
        if self.head is None:
            return 0
        return len(self.head.group) or 1

    def task(self, i: int) -> "Task":
        """Return the ``i``'th task of this dependency."""
        if i == 0:
            return self.head
        return self.head.group[i]


class TaskSubscriber:
    """Collects the tasks whose state changed since it was last asked."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._tasks: dict[int, Task] = {}

    def notify(self, task: "Task") -> None:
        """Record that ``task`` changed state."""
        with self._cond:
            self._tasks[id(task)] = task
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until changed tasks are available; return whether they are."""
        with self._cond:
            return self._cond.wait_for(lambda: bool(self._tasks), timeout)

    def tasks(self) -> list["Task"]:
        """Return and forget the tasks that changed since the last call."""
        with self._cond:
            tasks = list(self._tasks.values())
            self._tasks = {}
            return tasks


def _type_name(elem_type: Any) -> str:
    return getattr(elem_type, "__name__", None) or str(elem_type)


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


@dataclass(eq=False, repr=False)
class Task:
    """A concrete computational task and its runtime state."""

    name: TaskName = field(default_factory=TaskName)
    schema: Schema = field(default_factory=Schema)
    invocation: Any = None
    do: Optional[Callable[[list], Any]] = None
    deps: list[TaskDep] = field(default_factory=list)
    partitioner: Optional[Callable[..., Any]] = None
    num_partition: int = 1
    combiner: Optional[Callable[..., Any]] = None
    combine_key: str = ""
    pragma: Any = None
    slices: list = field(default_factory=list)
    group: list["Task"] = field(default_factory=list)
    scope: Any = None
    status: Optional[Callable[[str], None]] = None

    _cond: threading.Condition = field(
        default_factory=lambda: threading.Condition(threading.RLock()), init=False
    )
    _state: TaskState = field(default=TaskState.INIT, init=False)
    _err: Optional[BaseException] = field(default=None, init=False)
    _subs: list[TaskSubscriber] = field(default_factory=list, init=False)
    consecutive_lost: int = field(default=0, init=False)

    def phase(self) -> list["Task"]:
        """Return the tasks of the phase this task belongs to."""
        return list(self.group) if self.group else [self]

    def head(self) -> "Task":
        """Return the head task of this task's phase, or the task itself."""
        return self.group[0] if self.group else self

    def __str__(self) -> str:
        index = getattr(self.invocation, "index", 0)
        text = f"task {self.name} [{index}] {self._state}"
        if self._err is not None:
            text += f": {self._err}"
        return text

    __repr__ = __str__

    def set(self, state: TaskState) -> None:
        """Set the task's state and notify waiters and subscribers."""
        with self._cond:
            self._state = TaskState(state)
            self.broadcast()

    def error(self, err: BaseException) -> None:
        """Put the task in the ERR state with ``err``; notify waiters."""
        with self._cond:
            self._state = TaskState.ERR
            self._err = err
            if self.status is not None:
                self.status(str(err))
            self.broadcast()

    def err(self) -> Optional[BaseException]:
        """Return the task's error if it failed or was lost, else None."""
        with self._cond:
            if self._state == TaskState.ERR:
                if self._err is None:
                    raise RuntimeError("task in ERR state without an error")
                return self._err
            if self._state == TaskState.LOST:
                return TaskLostError()
            return None

    def state(self) -> TaskState:
        """Return the task's current state."""
        with self._cond:
            return self._state

    def broadcast(self) -> None:
        """Notify waiters and subscribers of a state change."""
        with self._cond:
            self._cond.notify_all()
            subs = list(self._subs)
        for sub in subs:
            sub.notify(self)

    def wait_state(self, state: TaskState, timeout: Optional[float] = None) -> TaskState:
        """Wait until the state is at least ``state`` and return it.

        Raises TimeoutError if ``timeout`` seconds pass first.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._state >= state, timeout):
                raise TimeoutError(f"{self}: timed out waiting for state {TaskState(state)}")
            return self._state

    def subscribe(self, subscriber: TaskSubscriber) -> None:
        """Notify ``subscriber`` of every later state change; idempotent."""
        with self._cond:
            if any(sub is subscriber for sub in self._subs):
                return
            self._subs.append(subscriber)

    def unsubscribe(self, subscriber: TaskSubscriber) -> None:
        """Stop notifying ``subscriber``; no-op if it was not subscribed."""
        with self._cond:
            self._subs = [sub for sub in self._subs if sub is not subscriber]

    def graph_string(self) -> str:
        """Return a schematic of the task graph rooted at this task."""
        buf = io.StringIO()
        self.write_graph(buf)
        return buf.getvalue()

    def write_graph(self, out: TextIO) -> None:
        """Write a schematic of the task graph rooted at this task to ``out``."""
        rows: list[list[str]] = [["tasks:"]]
        for task in self.all():
            outstr = ",".join(_type_name(task.schema.out(i)) for i in range(task.schema.num_out()))
            rows.append(["", str(task.name), outstr, f"{task.num_partition} [{task.state()}]"])
        out.write(_tabulate(rows))
        dep_rows: list[list[str]] = [["dependencies:"]]
        self._dep_rows(dep_rows)
        out.write(_tabulate(dep_rows))

    def _dep_rows(self, rows: list[list[str]]) -> None:
        for dep in self.deps:
            for i in range(dep.num_task()):
                task = dep.task(i)
                rows.append(["", f"{self.name}:", f"{task.name}[{dep.partition}]"])
                task._dep_rows(rows)

    def all(self) -> list["Task"]:
        """Return every task reachable from this one, sorted by name."""
        seen: dict[int, Task] = {}
        stack = [self]
        while stack:
            task = stack.pop()
            if id(task) in seen:
                continue
            seen[id(task)] = task
            for dep in task.deps:
                stack.extend(dep.task(i) for i in range(dep.num_task()))
        return sorted(seen.values(), key=lambda t: str(t.name))