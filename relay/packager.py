"""
Fits an artifact under the upload ceiling: pass through, compress, or split.
"""

import logging
from pathlib import Path
from typing import Optional

from relay.engines.ffmpeg import FFmpegError, FFmpegTool
from relay.errors import PackagingFailed
from relay.types import Artifact, Chunk, ChunkSet, DeliveryUnit, WholeFile
from relay.utils.constants import DEFAULT_MAX_UPLOAD_SIZE

logger = logging.getLogger(__name__)

COPY_BUFFER_BYTES = 1024 * 1024


def split_file(artifact: Artifact, ceiling: int, dest_dir: Path) -> ChunkSet:
    """
    Split ``artifact`` into ``ceiling``-byte chunks numbered from 1.

    Every chunk but the last is exactly ``ceiling`` bytes. Concatenating the
    chunks in index order reproduces the artifact.

    Raises:
        PackagingFailed: on any storage error.
    """
    if ceiling < 1:
        raise ValueError("ceiling must be positive")

    size = artifact.size_bytes
    total = max(1, -(-size // ceiling))
    name = artifact.path.name
    chunks = []

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        with open(artifact.path, "rb") as src:
            for index in range(1, total + 1):
                chunk_path = dest_dir / f"{name}.part{index:03d}"
                remaining = ceiling
                with open(chunk_path, "wb") as out:
                    while remaining > 0:
                        block = src.read(min(COPY_BUFFER_BYTES, remaining))
                        if not block:
                            break
                        out.write(block)
                        remaining -= len(block)
                chunks.append(Chunk(index=index, path=chunk_path, total_count=total))
    except OSError as e:
        raise PackagingFailed(f"Splitting {name} failed: {e}") from e

    logger.info("Split %s (%d bytes) into %d parts", name, size, total)
    return ChunkSet(chunks=chunks, source_name=name, source_size=size)


class SizePackager:
    """
    Produces the delivery unit for an artifact.

    Prefers one playable file: an oversized artifact is first re-encoded at
    the configured quality, and only split when that is unavailable or
    still too large.
    """

    def __init__(
        self,
        tool: Optional[FFmpegTool] = None,
        ceiling: int = DEFAULT_MAX_UPLOAD_SIZE,
        enable_compression: bool = True,
        crf: int = 28,
        preset: str = "fast",
        audio_bitrate: str = "128k",
    ):
        self.tool = tool
        self.ceiling = ceiling
        self.enable_compression = enable_compression
        self.crf = crf
        self.preset = preset
        self.audio_bitrate = audio_bitrate

    def _compress(self, artifact: Artifact) -> Optional[Artifact]:
        """Re-encode; None when the tool is unavailable, failed, or missed the ceiling."""
        if not self.enable_compression or self.tool is None:
            logger.info("Compression disabled, skipping re-encode")
            return None

        dst = artifact.path.with_name(f"compressed_{artifact.path.stem}.mp4")
        logger.info(
            "Attempting to compress %s to fit within %d bytes...",
            artifact.path.name,
            self.ceiling,
        )
        try:
            self.tool.reencode_to_fit(
                artifact.path,
                dst,
                crf=self.crf,
                preset=self.preset,
                audio_bitrate=self.audio_bitrate,
            )
            compressed = Artifact.from_path(dst)
        except (FFmpegError, OSError) as e:
            logger.warning("Video compression failed: %s", e)
            dst.unlink(missing_ok=True)
            return None

        if compressed.size_bytes > self.ceiling:
            logger.warning(
                "Compression did not reduce %s below the limit (%d > %d)",
                artifact.path.name,
                compressed.size_bytes,
                self.ceiling,
            )
            dst.unlink(missing_ok=True)
            return None

        logger.info(
            "Video compressed successfully: %d -> %d bytes",
            artifact.size_bytes,
            compressed.size_bytes,
        )
        return compressed

    def package(self, artifact: Artifact, chunk_dir: Optional[Path] = None) -> DeliveryUnit:
        """
        Return WholeFile when the artifact fits (possibly after re-encoding),
        otherwise a ChunkSet of the original bytes.
        """
        if artifact.size_bytes <= self.ceiling:
            return WholeFile(artifact)

        logger.info(
            "File exceeds upload limit (%d > %d bytes)",
            artifact.size_bytes,
            self.ceiling,
        )
        compressed = self._compress(artifact)
        if compressed is not None:
            return WholeFile(compressed)

        logger.info("Splitting file instead...")
        return split_file(
            artifact, self.ceiling, chunk_dir or artifact.path.parent / "chunks"
        )
