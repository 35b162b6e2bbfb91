"""Video post-processing with ffmpeg: downloads, last-frame grabs, narration merge, concat."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from typing import Optional, Sequence

import httpx

from moviegen.config import get_settings
from moviegen.core.exceptions import MediaProcessingError

logger = logging.getLogger(__name__)


def _run_ffmpeg(cmd: list, timeout: int = 600) -> None:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise MediaProcessingError(
            "ffmpeg not found. Install it on the machine where the Celery worker runs: "
            "macOS: brew install ffmpeg, Linux: apt install ffmpeg"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise MediaProcessingError(f"ffmpeg timed out after {timeout}s") from e
    if result.returncode != 0:
        raise MediaProcessingError(f"ffmpeg failed: {result.stderr[:500]}")


class FfmpegMedia:
    def __init__(self, ffmpeg: Optional[str] = None, download_timeout: Optional[float] = None):
        settings = get_settings()
        self.ffmpeg = ffmpeg or settings.ffmpeg_binary
        self.download_timeout = download_timeout or settings.media_download_timeout_seconds

    def download(self, url: str) -> bytes:
        try:
            r = httpx.get(url, timeout=self.download_timeout, follow_redirects=True)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise MediaProcessingError(f"Failed to download {url}: {e}") from e
        if not r.content:
            raise MediaProcessingError(f"Empty download from {url}")
        return r.content

    def extract_last_frame(self, video: bytes, at_seconds: float) -> bytes:
        """JPEG of the frame at `at_seconds` (callers pass duration minus a hair)."""
        with tempfile.TemporaryDirectory() as tmpdir:
            video_path = os.path.join(tmpdir, "scene.mp4")
            frame_path = os.path.join(tmpdir, "frame.jpg")
            with open(video_path, "wb") as f:
                f.write(video)
            _run_ffmpeg(
                [
                    self.ffmpeg, "-y", "-ss", f"{max(at_seconds, 0):.2f}", "-i", video_path,
                    "-frames:v", "1", "-q:v", "2", frame_path,
                ],
                timeout=60,
            )
            if not os.path.isfile(frame_path):
                raise MediaProcessingError("ffmpeg did not produce a frame")
            with open(frame_path, "rb") as f:
                return f.read()

    def merge_narration(self, video: bytes, audio: bytes) -> bytes:
        """Replace the video's audio track with the narration."""
        with tempfile.TemporaryDirectory() as tmpdir:
            video_path = os.path.join(tmpdir, "video.mp4")
            audio_path = os.path.join(tmpdir, "narration.mp3")
            out_path = os.path.join(tmpdir, "merged.mp4")
            with open(video_path, "wb") as f:
                f.write(video)
            with open(audio_path, "wb") as f:
                f.write(audio)
            _run_ffmpeg(
                [
                    self.ffmpeg, "-y", "-i", video_path, "-i", audio_path,
                    "-map", "0:v:0", "-map", "1:a:0",
                    "-c:v", "copy", "-c:a", "aac", "-shortest",
                    out_path,
                ]
            )
            if not os.path.isfile(out_path):
                raise MediaProcessingError("ffmpeg merge did not produce output")
            with open(out_path, "rb") as f:
                return f.read()

    def concatenate(self, videos: Sequence[bytes]) -> bytes:
        """Concat demuxer over same-codec scene files."""
        if not videos:
            raise MediaProcessingError("No scene videos to concatenate")
        with tempfile.TemporaryDirectory() as tmpdir:
            list_file = os.path.join(tmpdir, "concat.txt")
            with open(list_file, "w") as listing:
                for idx, data in enumerate(videos):
                    path = os.path.join(tmpdir, f"segment_{idx:04d}.mp4")
                    with open(path, "wb") as f:
                        f.write(data)
                    listing.write(f"file '{path}'\n")
            out_mp4 = os.path.join(tmpdir, "final.mp4")
            _run_ffmpeg(
                [self.ffmpeg, "-y", "-f", "concat", "-safe", "0", "-i", list_file, "-c", "copy", out_mp4]
            )
            if not os.path.isfile(out_mp4):
                raise MediaProcessingError("ffmpeg concat did not produce output")
            with open(out_mp4, "rb") as f:
                return f.read()
