"""Recursive, sorted, depth-first walking of a directory tree."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterator

__all__ = ["WalkEntry", "walk"]


@dataclass(frozen=True)
class WalkEntry:
    """A path found by :func:`walk`, with its status and the walk's root."""

    path: str
    info: os.stat_result
    root: str

    @property
    def relpath(self) -> str:
        """The path relative to the walk's root."""
        return os.path.relpath(self.path, self.root)

    @property
    def is_dir(self) -> bool:
        """Whether the path is a directory (symbolic links are followed)."""
        import stat

        return stat.S_ISDIR(self.info.st_mode)


def walk(root: str | os.PathLike) -> Iterator[WalkEntry]:
    """Yield every path under ``root``, root first, in sorted preorder.

    Symbolic links are followed. Paths that disappear while walking are
    skipped; other errors are raised as OSError.
    """
    root = os.fspath(root)
    todo = [root]
    while todo:
        path = todo.pop(0)
        try:
            info = os.stat(path)
        except FileNotFoundError:
            continue
        entry = WalkEntry(path, info, root)
        if entry.is_dir:
            names = sorted(os.listdir(path))
            todo[:0] = [os.path.join(path, name) for name in names]
        yield entry