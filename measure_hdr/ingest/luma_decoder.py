from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import IO, Any, Iterable, Iterator

import numpy as np

from measure_hdr.ingest.probe import probe_video

logger = logging.getLogger(__name__)

# Planar 4:2:0 with 10 significant bits in little-endian 16-bit words; the
# luma plane is the first width * height samples of every frame.
RAW_PIXEL_FORMAT = "yuv420p10le"
SAMPLE_DTYPE = np.dtype("<u2")


class FfmpegLumaDecoder:
    """Decode a video through an ffmpeg rawvideo pipe and yield its luma planes."""

    def __init__(
        self,
        video_path: str | Path,
        *,
        width: int,
        height: int,
        frame_count_hint: int | None = None,
        ffmpeg_binary: str = "ffmpeg",
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid frame size {width}x{height}.")

        self.video_path = Path(video_path)
        self.width = width
        self.height = height
        self.frame_count_hint = frame_count_hint
        self.ffmpeg_binary = ffmpeg_binary
        self._process: subprocess.Popen[bytes] | None = None
        self._stderr: IO[bytes] | None = None

    @property
    def luma_bytes(self) -> int:
        return self.width * self.height * SAMPLE_DTYPE.itemsize

    @property
    def frame_bytes(self) -> int:
        chroma_bytes = ((self.width + 1) // 2) * ((self.height + 1) // 2) * SAMPLE_DTYPE.itemsize
        return self.luma_bytes + 2 * chroma_bytes

    def frames(self) -> Iterator[np.ndarray]:
        if self._process is not None:
            raise RuntimeError("Decoder stream was already started.")

        process = self._spawn()
        if process.stdout is None:
            self._release()
            raise RuntimeError("ffmpeg was started without a stdout pipe.")
        frame_bytes = self.frame_bytes

        while True:
            buffer = process.stdout.read(frame_bytes)
            if not buffer:
                break
            if len(buffer) < frame_bytes:
                logger.warning(
                    "Dropping truncated trailing frame from %s (%d of %d bytes)",
                    self.video_path,
                    len(buffer),
                    frame_bytes,
                )
                break
            yield np.frombuffer(buffer, dtype=SAMPLE_DTYPE, count=self.width * self.height).reshape(
                self.height, self.width
            )

    def flush(self) -> Iterator[np.ndarray]:
        """Wait for ffmpeg to exit and surface decode failures.

        ffmpeg drains its own decoder before closing stdout, so no planes remain.
        """

        if self._process is None:
            return
        returncode = self._process.wait()
        stderr = self._read_stderr()
        self._release()
        if returncode != 0:
            details = f" ffmpeg stderr: {stderr}" if stderr else ""
            raise RuntimeError(f"ffmpeg failed while decoding {self.video_path} (exit {returncode}).{details}")
        yield from ()

    def close(self) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
            self._process.wait()
        self._release()

    def __enter__(self) -> FfmpegLumaDecoder:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _spawn(self) -> subprocess.Popen[bytes]:
        command = [
            self.ffmpeg_binary,
            "-v",
            "error",
            "-nostdin",
            "-i",
            str(self.video_path),
            "-map",
            "0:v:0",
            "-f",
            "rawvideo",
            "-pix_fmt",
            RAW_PIXEL_FORMAT,
            "-",
        ]
        self._stderr = tempfile.TemporaryFile()
        try:
            self._process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=self._stderr)
        except FileNotFoundError as exc:
            self._release()
            raise RuntimeError(
                "ffmpeg executable was not found. Install FFmpeg so ffmpeg is available on PATH."
            ) from exc
        return self._process

    def _read_stderr(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read().decode("utf-8", errors="replace").strip()

    def _release(self) -> None:
        if self._process is not None and self._process.stdout is not None:
            self._process.stdout.close()
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


class ArrayFrameSource:
    """In-memory frame source over already-decoded luma planes."""

    def __init__(
        self,
        planes: Iterable[Any],
        *,
        flushed: Iterable[Any] = (),
        frame_count_hint: int | None = None,
    ) -> None:
        self._planes = planes
        self._flushed = flushed
        self.frame_count_hint = frame_count_hint

    def frames(self) -> Iterator[np.ndarray]:
        for plane in self._planes:
            yield np.asarray(plane)

    def flush(self) -> Iterator[np.ndarray]:
        for plane in self._flushed:
            yield np.asarray(plane)


def open_luma_decoder(
    video_path: str,
    *,
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> tuple[FfmpegLumaDecoder, dict[str, Any]]:
    """Probe ``video_path`` and build a decoder sized from its first video stream."""

    metadata = probe_video(video_path, ffprobe_binary=ffprobe_binary)
    logger.info(
        "Input pixel format: %s, %dx%d",
        metadata["pix_fmt"],
        metadata["width"],
        metadata["height"],
    )
    decoder = FfmpegLumaDecoder(
        metadata["video_path"],
        width=metadata["width"],
        height=metadata["height"],
        frame_count_hint=metadata["frame_count_hint"],
        ffmpeg_binary=ffmpeg_binary,
    )
    return decoder, metadata
