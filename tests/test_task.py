import random
import threading

import pytest

from bigslice.frame import Schema
from bigslice.task import (
    Task,
    TaskDep,
    TaskLostError,
    TaskName,
    TaskState,
    TaskSubscriber,
)


def test_task_subscriber_sees_all_changed_tasks():
    num_tasks, num_writers = 2000, 8
    sub = TaskSubscriber()
    unsub = TaskSubscriber()
    tasks = [Task() for _ in range(num_tasks)]
    for task in tasks:
        task.subscribe(sub)
        task.subscribe(unsub)
        task.unsubscribe(unsub)

    lock = threading.Lock()
    want = set()

    def writer():
        rnd = random.Random()
        for _ in range(num_tasks // num_writers // 2):
            task = rnd.choice(tasks)
            task.set(TaskState(1 + rnd.randrange(len(TaskState) - 1)))
            with lock:
                want.add(id(task))

    got = set()
    done = threading.Event()

    def reader():
        while not done.is_set():
            if sub.wait(0.01):
                got.update(id(t) for t in sub.tasks())
        while sub.wait(0):
            got.update(id(t) for t in sub.tasks())

    writers = [threading.Thread(target=writer) for _ in range(num_writers)]
    r = threading.Thread(target=reader)
    r.start()
    for w in writers:
        w.start()
    for w in writers:
        w.join()
    done.set()
    r.join()
    assert got == want
    assert unsub.tasks() == []


def test_subscribe_is_idempotent():
    sub = TaskSubscriber()
    task = Task()
    task.subscribe(sub)
    task.subscribe(sub)
    task.set(TaskState.RUNNING)
    assert sub.tasks() == [task]
    assert sub.tasks() == []
    assert sub.wait(0) is False


def test_task_state_strings():
    task = Task()
    names = []
    for state in TaskState:
        task.set(state)
        names.append(str(task.state()))
    assert names == ["INIT", "WAITING", "RUNNING", "OK", "ERROR", "LOST"]
    task.set(TaskState.OK)
    assert task.state() < TaskState.ERR
    task.set(TaskState.LOST)
    assert task.state() > TaskState.ERR


def test_task_name():
    assert str(TaskName(1, "map", 3, 10)) == "map@10:3"
    assert str(TaskName(1, "reduce", 0, 0)) == "reduce_combiner"
    assert TaskName(1, "reduce").is_combiner()
    assert not TaskName(1, "map", 0, 2).is_combiner()


def test_err_states():
    task = Task()
    assert task.err() is None
    assert task.state() == TaskState.INIT
    task.set(TaskState.LOST)
    assert isinstance(task.err(), TaskLostError)
    messages = []
    task.status = messages.append
    boom = ValueError("boom")
    task.error(boom)
    assert task.state() == TaskState.ERR
    assert task.err() is boom
    assert messages == ["boom"]
    assert str(task).endswith("ERROR: boom")


def test_wait_state():
    task = Task()

    def advance():
        task.set(TaskState.RUNNING)
        task.set(TaskState.OK)

    t = threading.Thread(target=advance)
    t.start()
    assert task.wait_state(TaskState.OK, timeout=5) == TaskState.OK
    t.join()


def test_wait_state_timeout():
    task = Task()
    with pytest.raises(TimeoutError):
        task.wait_state(TaskState.OK, timeout=0.01)


def test_phase_and_head():
    a, b = Task(), Task()
    a.group = [a, b]
    b.group = [a, b]
    assert b.head() is a
    assert a.phase() == [a, b]
    c = Task()
    assert c.head() is c
    assert c.phase() == [c]
    dep = TaskDep(a, 0)
    assert dep.num_task() == 2
    assert dep.task(1) is b
    assert TaskDep().num_task() == 0
    assert TaskDep(c).num_task() == 1


def _graph():
    a = Task(name=TaskName(1, "a", 0, 1), schema=Schema((int,)))
    b = Task(
        name=TaskName(1, "b", 0, 1),
        schema=Schema((int, str)),
        deps=[TaskDep(a, 0)],
    )
    return a, b


def test_all_sorted_and_unique():
    a, b = _graph()
    c = Task(name=TaskName(1, "c", 0, 1), deps=[TaskDep(b, 0), TaskDep(a, 0)])
    assert c.all() == [a, b, c]


def test_graph_string():
    _, b = _graph()
    assert b.graph_string() == (
        "tasks:\n"
        "    a@1:0 int     1 [INIT]\n"
        "    b@1:0 int,str 1 [INIT]\n"
        "dependencies:\n"
        "    b@1:0: a@1:0[0]\n"
    )