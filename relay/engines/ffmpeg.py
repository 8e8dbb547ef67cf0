"""
Thin wrapper over the ffmpeg/ffprobe binaries.

Only success/failure and the resulting path matter to callers; stderr is
kept for logging.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Keyframe at t=0 and every second after, so seeking starts instantly
FORCE_KEY_FRAMES = "expr:gte(t,n_forced*1)"
STDERR_TAIL_CHARS = 500


class FFmpegError(RuntimeError):
    """An ffmpeg/ffprobe invocation failed or produced no output."""


class FFmpegTool:
    """Runs the ffmpeg commands the pipeline needs."""

    def __init__(
        self,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        timeout: Optional[float] = None,
    ):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        logger.debug("Running: %s", " ".join(args))
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise FFmpegError(f"{args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise FFmpegError(f"Could not run {args[0]}: {e}") from e

        if result.returncode != 0:
            tail = (result.stderr or "")[-STDERR_TAIL_CHARS:]
            raise FFmpegError(f"{args[0]} exited with {result.returncode}: {tail}")
        return result

    def _run_to(self, args: List[str], dst: Path) -> Path:
        self._run(args)
        if not dst.exists() or dst.stat().st_size == 0:
            raise FFmpegError(f"{args[0]} produced no output at {dst}")
        return dst

    def probe_video_codec(self, path: Path) -> str:
        """Codec name of the first video stream, or "" when there is none."""
        result = self._run(
            [
                self.ffprobe,
                "-v",
                "error",
                "-select_streams",
                "v:0",
                "-show_entries",
                "stream=codec_name",
                "-of",
                "default=nw=1:nk=1",
                str(path),
            ]
        )
        lines = (result.stdout or "").strip().splitlines()
        return lines[0].strip().lower() if lines else ""

    def remux_streamable(self, src: Path, dst: Path) -> Path:
        """Copy streams untouched, moving the moov atom to the front."""
        return self._run_to(
            [
                self.ffmpeg,
                "-y",
                "-i",
                str(src),
                "-c",
                "copy",
                "-movflags",
                "+faststart",
                "-force_key_frames",
                FORCE_KEY_FRAMES,
                "-f",
                "mp4",
                str(dst),
            ],
            dst,
        )

    def transcode_streamable(self, src: Path, dst: Path) -> Path:
        """Re-encode to H.264/AAC with a front-loaded index and leading keyframe."""
        return self._run_to(
            [
                self.ffmpeg,
                "-y",
                "-i",
                str(src),
                "-c:v",
                "libx264",
                "-c:a",
                "aac",
                "-movflags",
                "+faststart",
                "-force_key_frames",
                FORCE_KEY_FRAMES,
                "-f",
                "mp4",
                str(dst),
            ],
            dst,
        )

    def reencode_to_fit(
        self,
        src: Path,
        dst: Path,
        crf: int = 28,
        preset: str = "fast",
        audio_bitrate: str = "128k",
    ) -> Path:
        """Higher-compression H.264 pass used to get under the upload ceiling."""
        return self._run_to(
            [
                self.ffmpeg,
                "-y",
                "-i",
                str(src),
                "-c:v",
                "libx264",
                "-crf",
                str(crf),
                "-preset",
                preset,
                "-c:a",
                "aac",
                "-b:a",
                audio_bitrate,
                "-movflags",
                "+faststart",
                "-force_key_frames",
                FORCE_KEY_FRAMES,
                "-f",
                "mp4",
                str(dst),
            ],
            dst,
        )
