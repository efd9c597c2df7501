from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PQ_TRANSFER = "smpte2084"


def probe_video(video_path: str, ffprobe_binary: str = "ffprobe") -> dict[str, Any]:
    """Probe the first video stream via ffprobe and return decoder-facing metadata."""

    source_path = Path(video_path).expanduser().resolve()
    if not source_path.exists():
        raise FileNotFoundError(f"Video file not found: {source_path}")

    payload = _run_ffprobe(source_path, ffprobe_binary=ffprobe_binary)
    metadata = _normalize_probe_payload(source_path, payload)

    if metadata["color_transfer"] != PQ_TRANSFER:
        logger.warning(
            "Video stream transfer is %s, not %s; luminance figures assume PQ.",
            metadata["color_transfer"],
            PQ_TRANSFER,
        )
    return metadata


def _run_ffprobe(video_path: Path, ffprobe_binary: str = "ffprobe") -> dict[str, Any]:
    command = [
        ffprobe_binary,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        "-select_streams",
        "v:0",
        str(video_path),
    ]

    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError(
            "ffprobe executable was not found. Install FFmpeg so ffprobe is available on PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        if "error while loading shared libraries" in stderr:
            raise RuntimeError(
                "ffprobe is installed but failed to start because required shared libraries are missing."
                f" ffprobe stderr: {stderr}"
            ) from exc
        details = f" ffprobe stderr: {stderr}" if stderr else ""
        raise RuntimeError(f"ffprobe failed while probing video file: {video_path}.{details}") from exc

    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise RuntimeError("ffprobe returned invalid JSON output.") from exc


def _normalize_probe_payload(video_path: Path, payload: dict[str, Any]) -> dict[str, Any]:
    streams = [stream for stream in payload.get("streams", []) if stream.get("codec_type") == "video"]
    if not streams:
        raise RuntimeError(f"No video stream found in {video_path}.")

    stream = streams[0]
    format_entry = payload.get("format", {})
    width = _to_int(stream.get("width"))
    height = _to_int(stream.get("height"))
    if not width or not height:
        raise RuntimeError(f"ffprobe reported no frame size for {video_path}.")

    return {
        "status": "ok",
        "video_path": str(video_path),
        "stream_index": stream.get("index"),
        "codec_name": stream.get("codec_name"),
        "width": width,
        "height": height,
        "pix_fmt": stream.get("pix_fmt"),
        "color_transfer": stream.get("color_transfer"),
        "color_primaries": stream.get("color_primaries"),
        "avg_frame_rate": stream.get("avg_frame_rate"),
        "duration_seconds": _to_float(stream.get("duration") or format_entry.get("duration")),
        "frame_count_hint": _frame_count_hint(stream, format_entry),
    }


def _frame_count_hint(stream: dict[str, Any], format_entry: dict[str, Any]) -> int | None:
    candidates = [
        stream.get("nb_frames"),
        *_tag_values(stream.get("tags", {}), "NUMBER_OF_FRAMES"),
        *_tag_values(format_entry.get("tags", {}), "NUMBER_OF_FRAMES"),
    ]
    for raw_value in candidates:
        try:
            value = _to_int(raw_value)
        except ValueError:
            continue
        if value:
            return value
    return None


def _tag_values(tags: dict[str, Any], name: str) -> list[Any]:
    # Matroska writes per-language variants such as NUMBER_OF_FRAMES-eng.
    return [value for key, value in tags.items() if key.upper() == name or key.upper().startswith(f"{name}-")]


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    return int(raw_value)
