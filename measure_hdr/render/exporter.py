from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence

from measure_hdr.analysis.clip_summary import DEFAULT_THRESHOLDS, threshold_breakdown
from measure_hdr.models import AnalysisResult

CSV_FIELDS = [
    "frame_index",
    "max_code",
    "avg_code",
    "min_code",
    "mean_code",
    "max_nits",
    "avg_nits",
    "min_nits",
]


def export_results(
    result: AnalysisResult,
    output_dir: str | Path,
    *,
    basename: str = "luminance",
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
    source: str | None = None,
) -> dict[str, Path]:
    """Write the per-frame CSV table and the clip summary JSON."""

    resolved_output_dir = Path(output_dir)
    resolved_output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = resolved_output_dir / f"{basename}_frames.csv"
    summary_path = resolved_output_dir / f"{basename}_summary.json"

    _write_frames_csv(result, csv_path)
    summary_path.write_text(
        json.dumps(build_summary_payload(result, thresholds=thresholds, source=source), indent=2),
        encoding="utf-8",
    )

    return {
        "csv": csv_path,
        "summary": summary_path,
    }


def build_summary_payload(
    result: AnalysisResult,
    *,
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
    source: str | None = None,
) -> dict[str, Any]:
    summary = {key: round(value, 4) if isinstance(value, float) else value for key, value in asdict(result.summary).items()}
    payload: dict[str, Any] = {
        "summary": summary,
        "percent_frames_above": threshold_breakdown(result.frames, thresholds),
    }
    if source is not None:
        payload["source"] = source
    if result.decode_error is not None:
        payload["decode_error"] = result.decode_error
    return payload


def _write_frames_csv(result: AnalysisResult, path: Path) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for index, frame in enumerate(result.frames):
            writer.writerow(
                {
                    "frame_index": index,
                    "max_code": frame.max,
                    "avg_code": frame.avg,
                    "min_code": frame.min,
                    "mean_code": f"{frame.mean:.4f}",
                    "max_nits": f"{frame.max_nits:.4f}",
                    "avg_nits": f"{frame.avg_nits:.4f}",
                    "min_nits": f"{frame.min_nits:.4f}",
                }
            )
