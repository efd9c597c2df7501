from __future__ import annotations

import pytest

from measure_hdr.analysis.clip_summary import summarize
from measure_hdr.models import AnalysisResult, ClipSummary, FrameInfo
from measure_hdr.render.chart import render_chart


def test_render_chart_writes_png(tmp_path) -> None:
    frames = tuple(FrameInfo(max=400 + i * 10, min=i, avg=200 + i, mean=200.0 + i) for i in range(30))
    result = AnalysisResult(frames=frames, summary=summarize(frames))

    path = render_chart(result, tmp_path / "charts" / "clip.png", width=640, height=360, dpi=80, title="clip.mkv")

    assert path.exists()
    assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_render_chart_handles_single_dark_frame(tmp_path) -> None:
    frames = (FrameInfo(max=0, min=0, avg=0, mean=0.0),)
    result = AnalysisResult(frames=frames, summary=summarize(frames))

    path = render_chart(result, tmp_path / "dark.png", width=320, height=200, dpi=40)

    assert path.exists()


def test_render_chart_requires_frames(tmp_path) -> None:
    empty = AnalysisResult(frames=(), summary=ClipSummary(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0))

    with pytest.raises(ValueError, match="without frames"):
        render_chart(empty, tmp_path / "empty.png")
