from __future__ import annotations

from pathlib import Path

from measure_hdr.config import load_settings


def test_load_settings_falls_back_to_defaults_for_missing_file(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml")

    assert settings.analysis.progress_interval == 100
    assert settings.analysis.reference_fps == 24.0
    assert settings.analysis.workers is None
    assert settings.decoder.ffmpeg_binary == "ffmpeg"
    assert settings.render.thresholds[-1] == 4000


def test_load_settings_reads_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "analysis:\n  progress_interval: 250\n  partitions: 12\nrender:\n  output_dir: reports\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path)

    assert settings.analysis.progress_interval == 250
    assert settings.analysis.partitions == 12
    assert settings.render.output_dir == Path("reports")


def test_environment_overrides_take_precedence(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("analysis:\n  reference_fps: 25.0\n", encoding="utf-8")

    monkeypatch.setenv("MEASURE_HDR_ANALYSIS__REFERENCE_FPS", "23.976")
    monkeypatch.setenv("MEASURE_HDR_ANALYSIS__WORKERS", "6")
    monkeypatch.setenv("MEASURE_HDR_RENDER__THRESHOLDS", "[100, 1000]")
    monkeypatch.setenv("MEASURE_HDR_LOGGING__LEVEL", "DEBUG")
    monkeypatch.setenv("MEASURE_HDR_UNKNOWN__KEY", "ignored")

    settings = load_settings(config_path)

    assert settings.analysis.reference_fps == 23.976
    assert settings.analysis.workers == 6
    assert settings.render.thresholds == [100.0, 1000.0]
    assert settings.logging.level == "DEBUG"
