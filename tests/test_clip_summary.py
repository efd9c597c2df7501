from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from measure_hdr.analysis import clip_summary
from measure_hdr.analysis.clip_summary import percent_above, summarize, threshold_breakdown
from measure_hdr.analysis.transform import code_to_nits
from measure_hdr.models import EmptyInputError, FrameInfo


def _frame(max_code: int, avg_code: int, min_code: int) -> FrameInfo:
    return FrameInfo(max=max_code, min=min_code, avg=avg_code, mean=float(avg_code))


def _sample_results() -> list[FrameInfo]:
    return [_frame(10, 5, 1), _frame(20, 15, 2), _frame(5, 3, 0)]


def test_summarize_reports_maxcll_and_maxfall() -> None:
    summary = summarize(_sample_results())

    assert summary.frame_count == 3
    assert summary.maxcll == pytest.approx(code_to_nits(20))
    assert summary.maxfall == pytest.approx(code_to_nits(15))
    assert summary.max_of_min == pytest.approx(code_to_nits(2))


def test_summarize_averages_per_frame_luminance() -> None:
    summary = summarize(_sample_results())

    assert summary.maxcll_avg == pytest.approx((code_to_nits(10) + code_to_nits(20) + code_to_nits(5)) / 3)
    assert summary.maxfall_avg == pytest.approx((code_to_nits(5) + code_to_nits(15) + code_to_nits(3)) / 3)
    assert summary.min_avg == pytest.approx((code_to_nits(1) + code_to_nits(2) + code_to_nits(0)) / 3)


@pytest.mark.parametrize("partitions", [1, 2, 3, 50])
def test_summarize_is_partition_invariant(partitions: int) -> None:
    results = [_frame((i * 37) % 1024, (i * 13) % 500, (i * 7) % 100) for i in range(200)]
    baseline = summarize(results, partitions=1)

    with ThreadPoolExecutor(max_workers=3) as executor:
        summary = summarize(results, partitions=partitions, executor=executor)

    assert summary.maxcll == baseline.maxcll
    assert summary.maxfall == baseline.maxfall
    assert summary.max_of_min == baseline.max_of_min
    assert summary.maxcll_avg == pytest.approx(baseline.maxcll_avg)
    assert summary.maxfall_avg == pytest.approx(baseline.maxfall_avg)
    assert summary.min_avg == pytest.approx(baseline.min_avg)


def test_summarize_ties_report_the_shared_peak() -> None:
    summary = summarize([_frame(800, 400, 10), _frame(800, 400, 10)])

    assert summary.maxcll == pytest.approx(code_to_nits(800))
    assert summary.maxcll_avg == pytest.approx(code_to_nits(800))


def test_summarize_empty_results_fails_fast(monkeypatch) -> None:
    def _fail(*args: object, **kwargs: object) -> None:
        raise AssertionError("no reduction expected for an empty clip")

    monkeypatch.setattr(clip_summary, "fork_join", _fail)

    with pytest.raises(EmptyInputError, match="clip stage") as excinfo:
        summarize([])

    assert excinfo.value.stage == "clip"


def test_percent_above_counts_frames_strictly_above_threshold() -> None:
    results = [_frame(1023, 0, 0), _frame(0, 0, 0), _frame(0, 0, 0), _frame(1023, 1023, 0)]

    assert percent_above(results, 100.0, "max") == pytest.approx(50.0)
    assert percent_above(results, 100.0, "avg") == pytest.approx(25.0)
    assert percent_above(results, 10000.0, "max") == pytest.approx(0.0)


def test_percent_above_rejects_unknown_field() -> None:
    with pytest.raises(ValueError, match="Unsupported frame field"):
        percent_above(_sample_results(), 100.0, "median")


def test_threshold_breakdown_has_maxcll_and_maxfall_tables() -> None:
    breakdown = threshold_breakdown([_frame(1023, 100, 0), _frame(0, 0, 0)], thresholds=(100, 1000))

    assert breakdown["maxcll"] == {"100": 50.0, "1000": 50.0}
    assert breakdown["maxfall"] == {"100": 0.0, "1000": 0.0}


def test_threshold_breakdown_keys_match_for_integer_and_float_levels() -> None:
    frames = [_frame(1023, 100, 0), _frame(0, 0, 0)]

    assert threshold_breakdown(frames, thresholds=[100.0, 1000.0]) == threshold_breakdown(frames, thresholds=(100, 1000))
    assert list(threshold_breakdown(frames, thresholds=[150.5])["maxcll"]) == ["150.5"]
