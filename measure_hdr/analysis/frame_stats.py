from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any

import numpy as np

from measure_hdr.analysis.partition import fork_join, split_partitions
from measure_hdr.analysis.transform import MAX_CODE
from measure_hdr.models import EmptyInputError, FrameInfo


@dataclass(frozen=True, slots=True)
class PartialStats:
    """Local (min, max, sum) of one contiguous run of code values."""

    min: int
    max: int
    total: int
    count: int


def reduce_partition(chunk: np.ndarray) -> PartialStats:
    """Reduce one partition, clamping samples to the 10-bit code range.

    The sum is accumulated as uint64, wide enough for any realistic plane of
    samples no larger than 1023.
    """

    if chunk.size == 0:
        return PartialStats(min=MAX_CODE, max=0, total=0, count=0)

    low = int(chunk.min())
    high = int(chunk.max())
    if low < 0 or high > MAX_CODE:
        chunk = np.clip(chunk, 0, MAX_CODE)
        low = min(max(low, 0), MAX_CODE)
        high = min(max(high, 0), MAX_CODE)

    total = int(np.sum(chunk, dtype=np.uint64))
    return PartialStats(min=low, max=high, total=total, count=int(chunk.size))


def combine(left: PartialStats, right: PartialStats) -> PartialStats:
    if left.count == 0:
        return right
    if right.count == 0:
        return left
    return PartialStats(
        min=min(left.min, right.min),
        max=max(left.max, right.max),
        total=left.total + right.total,
        count=left.count + right.count,
    )


def frame_partial_stats(
    samples: Any,
    partitions: int | None = None,
    executor: Executor | None = None,
) -> PartialStats:
    """Combined (min, max, sum, count) of a luma plane before unit conversion."""

    flat = _as_code_values(samples)
    if flat.size == 0:
        raise EmptyInputError("frame", "luma plane contains no samples")

    chunks = split_partitions(flat, partitions)
    return fork_join(chunks, reduce_partition, combine, executor=executor)


def parse_frame(
    samples: Any,
    *,
    partitions: int | None = None,
    executor: Executor | None = None,
) -> FrameInfo:
    """Compute min, max and average code value of one frame's luma samples.

    The returned ``FrameInfo`` holds code values; ``avg`` is ``sum // count``
    (floor division) and ``mean`` the exact quotient. Use the ``*_nits``
    properties for luminance.
    """

    stats = frame_partial_stats(samples, partitions=partitions, executor=executor)
    return FrameInfo(
        max=stats.max,
        min=stats.min,
        avg=stats.total // stats.count,
        mean=stats.total / stats.count,
    )


def _as_code_values(samples: Any) -> np.ndarray:
    values = np.asarray(samples)
    if not np.issubdtype(values.dtype, np.integer):
        # NaN counts as black; infinities saturate to the code range.
        values = np.nan_to_num(values.astype(np.float64), nan=0.0, posinf=MAX_CODE, neginf=0.0).astype(np.int64)
    return values.ravel()
