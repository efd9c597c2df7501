from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, TypeVar

import typer

from measure_hdr.config import Settings, load_settings
from measure_hdr.ingest.luma_decoder import open_luma_decoder
from measure_hdr.ingest.probe import probe_video
from measure_hdr.logging_config import configure_logging
from measure_hdr.pipeline import AnalysisPipeline, log_progress
from measure_hdr.render.chart import render_chart
from measure_hdr.render.exporter import export_results

app = typer.Typer(help="HDR10 (PQ) luminance analysis: per-frame luma statistics, MaxCLL and MaxFALL.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION_HELP = "Path to YAML configuration file."


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


@config_app.command("show")
def show_config(
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="MEASURE_HDR_CONFIG",
        help=CONFIG_OPTION_HELP,
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("probe")
def probe(
    video_path: str,
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="MEASURE_HDR_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Print the decoder-facing metadata of a video's first stream."""

    settings = _bootstrap(config_path)
    try:
        result = probe_video(video_path, ffprobe_binary=settings.decoder.ffprobe_binary)
    except RuntimeError as exc:
        logger.error("Probe failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(result, indent=2))


@app.command("analyze")
def analyze(
    video_path: str,
    config_path: Path = typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar="MEASURE_HDR_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for chart/CSV/JSON outputs."),
    basename: str | None = typer.Option(None, help="Base filename for outputs. Defaults to the video filename stem."),
    chart: bool = typer.Option(True, help="Render the luminance chart PNG."),
    export: bool = typer.Option(True, help="Write the per-frame CSV and summary JSON."),
    progress_interval: int | None = typer.Option(None, min=1, help="Frames between progress log lines."),
    workers: int | None = typer.Option(None, min=1, help="Reduction worker threads (default: CPU-based)."),
) -> None:
    """Decode a PQ video, measure per-frame luma and report MaxCLL/MaxFALL."""

    settings = _bootstrap(config_path)
    resolved_video_path = Path(video_path).expanduser().resolve()
    if not resolved_video_path.exists():
        raise FileNotFoundError(f"Video file not found: {resolved_video_path}")

    resolved_output_dir = output_dir or settings.render.output_dir
    resolved_basename = basename or resolved_video_path.stem
    total_steps = 4
    outputs: dict[str, str] = {}

    try:
        decoder, metadata = _run_with_progress(
            1,
            total_steps,
            "Probe video",
            lambda: open_luma_decoder(
                str(resolved_video_path),
                ffmpeg_binary=settings.decoder.ffmpeg_binary,
                ffprobe_binary=settings.decoder.ffprobe_binary,
            ),
        )

        pipeline = AnalysisPipeline(
            progress_interval=progress_interval or settings.analysis.progress_interval,
            reference_fps=settings.analysis.reference_fps,
            observer=log_progress,
            partitions=settings.analysis.partitions,
            workers=workers or settings.analysis.workers,
        )
        with decoder:
            result = _run_with_progress(2, total_steps, "Analyze luminance", lambda: pipeline.run(decoder))

        if chart:
            chart_path = _run_with_progress(
                3,
                total_steps,
                "Render chart",
                lambda: render_chart(
                    result,
                    resolved_output_dir / f"{resolved_basename}.png",
                    width=settings.render.width,
                    height=settings.render.height,
                    dpi=settings.render.dpi,
                    title=resolved_video_path.name,
                ),
            )
            outputs["chart"] = str(chart_path)
        else:
            typer.echo(f"[3/{total_steps}] Render chart skipped", err=True)

        if export:
            exported = _run_with_progress(
                4,
                total_steps,
                "Export results",
                lambda: export_results(
                    result,
                    resolved_output_dir,
                    basename=resolved_basename,
                    thresholds=settings.render.thresholds,
                    source=str(resolved_video_path),
                ),
            )
            outputs.update({key: str(path) for key, path in exported.items()})
        else:
            typer.echo(f"[4/{total_steps}] Export results skipped", err=True)
    except (RuntimeError, ValueError) as exc:
        logger.error("Analysis failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        json.dumps(
            _analysis_report(
                video_path=resolved_video_path,
                metadata=metadata,
                summary=asdict(result.summary),
                outputs=outputs,
                decode_error=result.decode_error,
            ),
            indent=2,
        )
    )
    if result.decode_error is not None:
        typer.echo(f"Error: {result.decode_error}", err=True)
        raise typer.Exit(code=1)


def _analysis_report(
    *,
    video_path: Path,
    metadata: dict[str, Any],
    summary: dict[str, Any],
    outputs: dict[str, str],
    decode_error: str | None = None,
) -> dict[str, Any]:
    report: dict[str, Any] = {
        "status": "ok" if decode_error is None else "partial",
        "video_path": str(video_path),
        "width": metadata.get("width"),
        "height": metadata.get("height"),
        "pix_fmt": metadata.get("pix_fmt"),
        "color_transfer": metadata.get("color_transfer"),
        "summary": {key: round(value, 4) if isinstance(value, float) else value for key, value in summary.items()},
        "outputs": outputs,
    }
    if decode_error is not None:
        report["decode_error"] = decode_error
    return report


if __name__ == "__main__":
    app()
