from __future__ import annotations

import logging
from pathlib import Path

from measure_hdr.analysis.transform import MAX_NITS, nits_to_pq
from measure_hdr.models import AnalysisResult

logger = logging.getLogger(__name__)

MIN_AXIS_NITS = 100.0
TICK_NITS = (0.1, 1.0, 5.0, 10.0, 50.0, 100.0, 200.0, 400.0, 600.0, 1000.0, 2000.0, 4000.0, 10000.0)

SERIES = (
    ("max", "red"),
    ("avg", "blue"),
    ("min", "green"),
)


def render_chart(
    result: AnalysisResult,
    output_path: str | Path,
    *,
    width: int = 1920,
    height: int = 1080,
    dpi: int = 100,
    title: str | None = None,
) -> Path:
    """Draw per-frame max/avg/min luminance as area series on a PQ-scaled axis."""

    if not result.frames:
        raise ValueError("Cannot render a chart without frames.")

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    summary = result.summary
    x = list(range(len(result.frames)))
    labels = {
        "max": f"Maximum (MaxCLL: {summary.maxcll:.2f} nits, avg: {summary.maxcll_avg:.2f} nits)",
        "avg": f"Average (MaxFALL: {summary.maxfall:.2f} nits, avg: {summary.maxfall_avg:.2f} nits)",
        "min": f"Minimum (max: {summary.max_of_min:.2f} nits, avg: {summary.min_avg:.2f} nits)",
    }

    fig = plt.figure(figsize=(width / dpi, height / dpi), dpi=dpi)
    try:
        ax = fig.add_subplot(111)
        for field, color in SERIES:
            values = [getattr(frame, f"{field}_pq") for frame in result.frames]
            ax.fill_between(x, values, 0.0, alpha=0.2, linewidth=0.0, color=color)
            ax.plot(x, values, linewidth=1.2, color=color, label=labels[field])

        ax.set_xlim(0, max(len(x) - 1, 1))
        ax.margins(x=0)
        top = max(nits_to_pq(min(summary.maxcll * 1.1, MAX_NITS)), nits_to_pq(MIN_AXIS_NITS))
        ticks = [v for v in TICK_NITS if nits_to_pq(v) <= top]
        ax.set_yticks([nits_to_pq(v) for v in ticks])
        ax.set_yticklabels([f"{v:g}" for v in ticks])
        ax.set_ylim(0.0, top)
        ax.set_xlabel("frame")
        ax.set_ylabel("nits (cd/m²)")
        ax.grid(True, alpha=0.15)
        ax.set_title(title or "Luminance per frame (PQ)")
        ax.legend(loc="upper left", framealpha=1.0)

        fig.savefig(path)
    finally:
        plt.close(fig)

    logger.info("Chart written to %s", path)
    return path
