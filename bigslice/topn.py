"""Selection of the indices of the largest counts."""

from __future__ import annotations

import heapq
from typing import Sequence

__all__ = ["topn"]


def topn(counts: Sequence[int], n: int) -> list[int]:
    """Return the indices of the ``n`` largest values in ``counts``.

    If there are fewer than ``n`` counts, all indices are returned. The
    order of the returned indices is unspecified.
    """
    if n <= 0:
        raise ValueError(f"topn: n={n}, counts={list(counts)}")
    n = min(n, len(counts))
    heap: list[tuple[int, int]] = []
    for index, count in enumerate(counts):
        if len(heap) < n:
            heapq.heappush(heap, (count, index))
        elif count > heap[0][0]:
            heapq.heapreplace(heap, (count, index))
    return [index for _, index in heap]