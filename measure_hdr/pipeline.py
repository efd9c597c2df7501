from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from time import perf_counter
from typing import Any, Callable, Iterable, Protocol

import numpy as np

from measure_hdr.analysis.clip_summary import summarize
from measure_hdr.analysis.frame_stats import parse_frame
from measure_hdr.models import AnalysisResult, FrameInfo, PipelineState, ProgressReport

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[ProgressReport], None]
Renderer = Callable[[AnalysisResult], Any]

_NEXT_STATE = {
    PipelineState.INITIALIZED: PipelineState.STREAMING,
    PipelineState.STREAMING: PipelineState.FLUSHING,
    PipelineState.FLUSHING: PipelineState.COMPLETED,
}


class FrameSource(Protocol):
    """Decoder-side contract: luma planes in presentation order, then a drain."""

    frame_count_hint: int | None

    def frames(self) -> Iterable[np.ndarray]:
        ...

    def flush(self) -> Iterable[np.ndarray]:
        ...


class AnalysisPipeline:
    """Drive one analysis run: decode order in, frozen results and summary out.

    A pipeline instance owns its results list and counters and runs exactly once.
    """

    def __init__(
        self,
        *,
        progress_interval: int = 100,
        reference_fps: float = 24.0,
        observer: ProgressObserver | None = None,
        partitions: int | None = None,
        workers: int | None = None,
        clock: Callable[[], float] = perf_counter,
    ) -> None:
        if progress_interval < 1:
            raise ValueError(f"progress_interval must be positive, got {progress_interval}.")
        if reference_fps <= 0:
            raise ValueError(f"reference_fps must be positive, got {reference_fps}.")

        self.progress_interval = progress_interval
        self.reference_fps = reference_fps
        self.observer = observer
        self.partitions = partitions
        self.workers = workers
        self._clock = clock

        self.state = PipelineState.INITIALIZED
        self.results: list[FrameInfo] = []
        self.frames_processed = 0
        self._last_checkpoint = 0.0

    def run(self, source: FrameSource, renderer: Renderer | None = None) -> AnalysisResult:
        decode_error: str | None = None
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="luma-reduce") as executor:
            self._advance(PipelineState.STREAMING)
            self._last_checkpoint = self._clock()
            try:
                self._drain(source.frames(), executor, source.frame_count_hint)
            except RuntimeError as exc:
                decode_error = str(exc)
                logger.error("Decoding stopped after %d frames: %s", self.frames_processed, exc)

            self._advance(PipelineState.FLUSHING)
            if decode_error is None:
                try:
                    flushed = self._drain(source.flush(), executor, source.frame_count_hint)
                except RuntimeError as exc:
                    decode_error = str(exc)
                    logger.error("Decoder drain failed after %d frames: %s", self.frames_processed, exc)
                else:
                    if flushed:
                        logger.debug("Flushed %d buffered frames from decoder", flushed)

            summary = summarize(self.results, partitions=self.partitions, executor=executor)

        result = AnalysisResult(frames=tuple(self.results), summary=summary, decode_error=decode_error)
        self._advance(PipelineState.COMPLETED)
        logger.info(
            "Analyzed %d frames: MaxCLL %.2f nits, MaxFALL %.2f nits",
            summary.frame_count,
            summary.maxcll,
            summary.maxfall,
        )

        if renderer is not None:
            renderer(result)
        return result

    def _advance(self, target: PipelineState) -> None:
        if _NEXT_STATE.get(self.state) is not target:
            raise RuntimeError(f"Illegal pipeline transition: {self.state.value} -> {target.value}")
        logger.debug("Pipeline state %s -> %s", self.state.value, target.value)
        self.state = target

    def _drain(self, planes: Iterable[np.ndarray], executor: Executor, frame_count_hint: int | None) -> int:
        count = 0
        for plane in planes:
            self._consume(plane, executor, frame_count_hint)
            count += 1
        return count

    def _consume(self, plane: np.ndarray, executor: Executor, frame_count_hint: int | None) -> None:
        self.results.append(parse_frame(plane, partitions=self.partitions, executor=executor))
        self.frames_processed += 1

        if self.frames_processed % self.progress_interval == 0:
            self._report(frame_count_hint)

    def _report(self, frame_count_hint: int | None) -> None:
        now = self._clock()
        elapsed = now - self._last_checkpoint
        self._last_checkpoint = now

        if self.observer is None:
            return

        fps = self.progress_interval / elapsed if elapsed > 0 else float("inf")
        percent = 100.0 * self.frames_processed / frame_count_hint if frame_count_hint else None
        report = ProgressReport(
            frames_processed=self.frames_processed,
            interval_frames=self.progress_interval,
            elapsed_seconds=elapsed,
            fps=fps,
            speed=fps / self.reference_fps,
            percent_complete=percent,
        )
        try:
            self.observer(report)
        except Exception as exc:
            logger.warning("Progress observer failed at frame %d: %s", self.frames_processed, exc)


def log_progress(report: ProgressReport) -> None:
    """Default progress observer, logs one line per checkpoint."""

    if report.percent_complete is not None:
        logger.info(
            "%02.0f%%, last %d took %.2fs",
            report.percent_complete,
            report.interval_frames,
            report.elapsed_seconds,
        )
    else:
        logger.info(
            "last %d frames %.2ffps (%.3fx)",
            report.interval_frames,
            report.fps,
            report.speed,
        )
