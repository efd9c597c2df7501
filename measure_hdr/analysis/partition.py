from __future__ import annotations

import os
from concurrent.futures import Executor
from functools import reduce
from typing import Callable, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def default_partition_count() -> int:
    return max(os.cpu_count() or 1, 1)


def split_partitions(values: np.ndarray, partitions: int | None = None) -> list[np.ndarray]:
    """Split an array along its first axis into contiguous views covering every row once."""

    requested = partitions if partitions is not None else default_partition_count()
    if requested < 1:
        raise ValueError(f"Partition count must be positive, got {requested}.")
    count = min(requested, max(len(values), 1))
    return np.array_split(values, count)


def fork_join(
    chunks: Sequence[np.ndarray],
    reduce_chunk: Callable[[np.ndarray], T],
    combine: Callable[[T, T], T],
    executor: Executor | None = None,
) -> T:
    """Reduce each chunk (concurrently when an executor is given) and fold the partials.

    The caller blocks until every partial has been combined. ``combine`` must be
    associative; partials are folded in chunk order.
    """

    if not chunks:
        raise ValueError("fork_join needs at least one chunk.")

    if executor is None or len(chunks) == 1:
        partials = [reduce_chunk(chunk) for chunk in chunks]
    else:
        partials = list(executor.map(reduce_chunk, chunks))

    return reduce(combine, partials)
