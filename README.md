# bigslice

Building blocks for sharded, columnar data processing. The package has no
third-party dependencies.

## Modules

- `bigslice.frame`: `Frame` is a window (offset, length, capacity) over
  typed, equal-length columns. Views made with `slice` share their columns.
  `make` builds a zero-filled frame from a `Schema` or another frame.
  `slices` wraps lists as columns. `copy`, `append_frame` and `compatible`
  work across frames. A frame can `grow`, `ensure` a length, `swap` rows,
  `zero` itself, compare rows with `less` and `hash` rows by its prefix
  (key) columns. `prefixed` sets the number of key columns. `write_tab`
  and `tab_string` print the frame as an aligned table.
- `bigslice.ops`: a registry of per-type column operations (`Ops`: `less`,
  `hash_with_seed`, and an optional `encode`/`decode` pair). Use
  `register_ops` to add entries and `can_compare` and `can_hash` to query
  them. Built-in entries cover `str`, `bytes`, `int`, `float`, `bool` and
  `None`. Hashing uses `murmur3_32`, with `hash32` and `hash64` for integers.
- `bigslice.codec`: `Session` holds state per key (`fresh_key`). `Encoder`
  and `Decoder` are abstract bases for column codecs.
- `bigslice.zero`: `zero_value` returns the zero value of a type.
  `zero_slice` and `zero_range` reset a sequence, or part of it, to that
  value in place.
- `bigslice.metrics`: counters (`new_counter`) held in `Scope` objects.
  Scopes can be merged, reset, and serialized with `encode` and `decode`.
  Code run inside `scoped_context` finds its scope with `context_scope`.
- `bigslice.task`: `Task`, `TaskName`, `TaskDep` and `TaskState` describe
  task graphs. A task tracks its state and error (`set`, `error`, `err`,
  `wait_state`). `TaskSubscriber` collects the tasks whose state changed.
  `all`, `graph_string` and `write_graph` describe a whole graph.
- `bigslice.trace`: `Event` and `Trace` in the Chrome tracing JSON format,
  with `encode` and `decode`.
- `bigslice.tracer`: `Tracer` records begin and end events for tasks and
  invocations on each machine and assigns virtual thread ids from a
  `TidPool`. `marshal` writes the trace; `append_coalesce` merges matching
  "B"/"E" pairs into "X" events.
- `bigslice.func`: `func` registers a function with typed arguments taken
  from its annotations. A `FuncValue` can `apply` the function or build an
  `Invocation`, which can `invoke` it later. `func_locations` lists where
  each function was registered, and `func_locations_diff` diffs two such
  lists.
- `bigslice.walker.walk` yields a `WalkEntry` for each path under a
  directory, in sorted depth-first order, following symbolic links.
- `bigslice.topn.topn` returns the indices of the largest counts.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from bigslice import frame

f = frame.slices([3, 1, 2], ["c", "a", "b"], types=(int, str))
g = frame.append_frame(f, f)
print(len(g))          # 6
print(g.tab_string())
```

```python
from bigslice.metrics import Scope, new_counter

filtered = new_counter()
a, b = Scope(), Scope()
filtered.incr(a, 2)
filtered.incr(b, 3)
a.merge(b)
print(filtered.value(a))   # 5
```

```python
from bigslice.func import func_locations_diff

print(func_locations_diff(["a", "b", "d"], ["a", "c", "d"]))
# ['a', '- b', '+ c', 'd']
```

## What it does not do

The package only provides building blocks. It does not include:

- slice operators such as reduce, reshard or reshuffle;
- an executor or session that compiles slices into tasks and runs them,
  locally or across machines;
- an on-disk cache of results;
- a command-line tool.

A `Task` holds state and dependencies, but something outside this package
has to schedule and run it.