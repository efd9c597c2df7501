from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from measure_hdr.analysis.transform import code_to_nits, code_to_pq


class EmptyInputError(ValueError):
    """Raised when a reduction stage is handed nothing to reduce."""

    def __init__(self, stage: str, detail: str) -> None:
        super().__init__(f"{stage} stage: {detail}")
        self.stage = stage


@dataclass(frozen=True, slots=True)
class FrameInfo:
    """Luma statistics of one decoded frame, as 10-bit code values.

    ``avg`` is the floor of the exact mean so it stays a valid code value;
    ``mean`` keeps the unrounded figure. The ``*_pq`` and ``*_nits``
    properties convert through the PQ transfer function.
    """

    max: int
    min: int
    avg: int
    mean: float

    @property
    def max_pq(self) -> float:
        return code_to_pq(self.max)

    @property
    def min_pq(self) -> float:
        return code_to_pq(self.min)

    @property
    def avg_pq(self) -> float:
        return code_to_pq(self.avg)

    @property
    def max_nits(self) -> float:
        return code_to_nits(self.max)

    @property
    def min_nits(self) -> float:
        return code_to_nits(self.min)

    @property
    def avg_nits(self) -> float:
        return code_to_nits(self.avg)


@dataclass(frozen=True, slots=True)
class ClipSummary:
    """Clip-level content light level metrics, all in nits."""

    frame_count: int
    maxcll: float
    maxcll_avg: float
    maxfall: float
    maxfall_avg: float
    max_of_min: float
    min_avg: float


@dataclass(frozen=True, slots=True)
class ProgressReport:
    frames_processed: int
    interval_frames: int
    elapsed_seconds: float
    fps: float
    speed: float
    percent_complete: float | None = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Frozen output of one pipeline run, handed to renderers.

    `decode_error` is set when the decoder failed partway and the figures cover
    only the frames decoded before the failure.
    """

    frames: tuple[FrameInfo, ...]
    summary: ClipSummary
    decode_error: str | None = None


class PipelineState(str, Enum):
    INITIALIZED = "initialized"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    COMPLETED = "completed"
