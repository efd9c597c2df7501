from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from measure_hdr.analysis.partition import fork_join, split_partitions
from measure_hdr.analysis.transform import codes_to_nits_array
from measure_hdr.models import ClipSummary, EmptyInputError, FrameInfo

DEFAULT_THRESHOLDS = (100, 150, 200, 400, 600, 1000, 2000, 4000)
FRAME_FIELDS = ("max", "avg", "min")


@dataclass(frozen=True, slots=True)
class _ClipPartial:
    peak_max: float
    sum_max: float
    peak_avg: float
    sum_avg: float
    peak_min: float
    sum_min: float
    count: int


def frame_nits_table(results: Sequence[FrameInfo]) -> np.ndarray:
    """Per-frame (max, avg, min) luminance in nits, one row per frame."""

    codes = np.array([(frame.max, frame.avg, frame.min) for frame in results], dtype=np.int64)
    return codes_to_nits_array(codes.reshape(-1, 3))


def summarize(
    results: Sequence[FrameInfo],
    *,
    partitions: int | None = None,
    executor: Executor | None = None,
) -> ClipSummary:
    """Reduce per-frame statistics to MaxCLL, MaxFALL and per-field clip averages."""

    if len(results) == 0:
        raise EmptyInputError("clip", "no frame statistics to summarize")

    table = frame_nits_table(results)
    chunks = split_partitions(table, partitions)
    total = fork_join(chunks, _reduce_rows, _combine, executor=executor)

    return ClipSummary(
        frame_count=total.count,
        maxcll=total.peak_max,
        maxcll_avg=total.sum_max / total.count,
        maxfall=total.peak_avg,
        maxfall_avg=total.sum_avg / total.count,
        max_of_min=total.peak_min,
        min_avg=total.sum_min / total.count,
    )


def percent_above(results: Sequence[FrameInfo], threshold_nits: float, field: str = "max") -> float:
    """Percentage of frames whose ``field`` luminance is strictly above ``threshold_nits``."""

    if field not in FRAME_FIELDS:
        raise ValueError(f"Unsupported frame field: {field}")
    if len(results) == 0:
        raise EmptyInputError("clip", "no frame statistics to measure against thresholds")

    column = frame_nits_table(results)[:, FRAME_FIELDS.index(field)]
    return float(np.count_nonzero(column > threshold_nits)) * 100.0 / len(column)


def threshold_breakdown(
    results: Sequence[FrameInfo],
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
) -> dict[str, dict[str, float]]:
    """MaxCLL/MaxFALL percentage-above table keyed by threshold."""

    return {
        "maxcll": {f"{t:g}": round(percent_above(results, t, "max"), 2) for t in thresholds},
        "maxfall": {f"{t:g}": round(percent_above(results, t, "avg"), 2) for t in thresholds},
    }


def _reduce_rows(rows: np.ndarray) -> _ClipPartial:
    if len(rows) == 0:
        return _ClipPartial(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)

    peaks = rows.max(axis=0)
    sums = rows.sum(axis=0)
    return _ClipPartial(
        peak_max=float(peaks[0]),
        sum_max=float(sums[0]),
        peak_avg=float(peaks[1]),
        sum_avg=float(sums[1]),
        peak_min=float(peaks[2]),
        sum_min=float(sums[2]),
        count=len(rows),
    )


def _combine(left: _ClipPartial, right: _ClipPartial) -> _ClipPartial:
    if left.count == 0:
        return right
    if right.count == 0:
        return left
    return _ClipPartial(
        peak_max=max(left.peak_max, right.peak_max),
        sum_max=left.sum_max + right.sum_max,
        peak_avg=max(left.peak_avg, right.peak_avg),
        sum_avg=left.sum_avg + right.sum_avg,
        peak_min=max(left.peak_min, right.peak_min),
        sum_min=left.sum_min + right.sum_min,
        count=left.count + right.count,
    )
