"""
Makes the merged artifact play progressively and seek from the start.
"""

import logging
import os
from enum import Enum
from pathlib import Path

from relay.engines.ffmpeg import FFmpegError, FFmpegTool
from relay.errors import NormalizationFailed
from relay.types import Artifact
from relay.utils.constants import STREAMABLE_VIDEO_CODEC

logger = logging.getLogger(__name__)


class NormalizeBranch(str, Enum):
    REMUX = "remux"
    TRANSCODE = "transcode"


def _swap_into_place(tmp: Path, artifact: Artifact) -> Artifact:
    """Atomically replace the artifact with ``tmp``, ending up with a .mp4 name."""
    final = artifact.path.with_suffix(".mp4")
    os.replace(tmp, final)
    if final != artifact.path:
        artifact.path.unlink(missing_ok=True)
    return Artifact.from_path(final)


class StreamabilityNormalizer:
    """
    Remuxes H.264 sources and transcodes everything else.

    Either branch writes to a sibling temp file and swaps it in, so the
    original is never left half-written.
    """

    def __init__(self, tool: FFmpegTool, enabled: bool = True):
        self.tool = tool
        self.enabled = enabled

    def choose_branch(self, artifact: Artifact) -> NormalizeBranch:
        try:
            codec = self.tool.probe_video_codec(artifact.path)
        except FFmpegError as e:
            raise NormalizationFailed(f"Codec inspection failed: {e}") from e

        if codec == STREAMABLE_VIDEO_CODEC:
            logger.info("Video is encoded with H.264, remuxing only")
            return NormalizeBranch.REMUX
        logger.warning(
            "Video codec is %r, not H.264. Re-encoding...", codec or "unknown"
        )
        return NormalizeBranch.TRANSCODE

    def normalize(self, artifact: Artifact) -> Artifact:
        """
        Normalize ``artifact`` in place.

        Raises:
            NormalizationFailed: inspection, remux or transcode failed.
        """
        if not self.enabled:
            logger.info("Streamable check is disabled.")
            return artifact

        branch = self.choose_branch(artifact)
        tmp = artifact.path.with_name(f"{branch.value}_{artifact.path.stem}.mp4")

        try:
            if branch == NormalizeBranch.REMUX:
                self.tool.remux_streamable(artifact.path, tmp)
            else:
                self.tool.transcode_streamable(artifact.path, tmp)
            result = _swap_into_place(tmp, artifact)
        except (FFmpegError, OSError) as e:
            tmp.unlink(missing_ok=True)
            raise NormalizationFailed(f"{branch.value} failed: {e}") from e

        logger.info(
            "Video is streamable (%s): %s, %d bytes",
            branch.value,
            result.path.name,
            result.size_bytes,
        )
        return result
