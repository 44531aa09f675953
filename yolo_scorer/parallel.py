"""
Fan-out/fan-in helpers for the data-parallel stages (pixel extraction, decoding).

Work is split into contiguous partitions; each worker returns its own result and
results come back in partition order, so callers never share a mutable
accumulator between threads.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

# Smallest partition handed to a worker.
MIN_PARTITION = 64


def default_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


def partition(n: int, parts: int, min_size: int = MIN_PARTITION) -> List[range]:
    """
    Split range(n) into at most `parts` contiguous, ascending ranges.
    """

    if n <= 0:
        return []
    parts = max(1, min(parts, n // max(1, min_size) or 1))
    step, extra = divmod(n, parts)
    out: List[range] = []
    start = 0
    for i in range(parts):
        stop = start + step + (1 if i < extra else 0)
        out.append(range(start, stop))
        start = stop
    return out


def map_ordered(fn: Callable[[T], R], items: Sequence[T], max_workers: Optional[int] = None) -> List[R]:
    """
    Apply `fn` to every item on a thread pool and return results in input order.
    """

    if not items:
        return []
    if len(items) == 1:
        return [fn(items[0])]
    workers = min(len(items), max_workers or default_workers())
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(fn, items))
