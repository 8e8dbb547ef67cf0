# pylint: disable=missing-module-docstring, missing-function-docstring
"""
Tests for size-constrained packaging.
"""

import os
from unittest.mock import MagicMock, patch

import pytest

from relay.engines.ffmpeg import FFmpegError, FFmpegTool
from relay.errors import PackagingFailed
from relay.packager import SizePackager, split_file
from relay.types import Artifact, ChunkSet, WholeFile


def _sparse_artifact(tmp_path, size, name="big.mp4"):
    path = tmp_path / name
    with open(path, "wb") as f:
        f.truncate(size)
    return Artifact.from_path(path)


def _artifact(tmp_path, data, name="video.mp4"):
    path = tmp_path / name
    path.write_bytes(data)
    return Artifact.from_path(path)


def _reassemble(chunk_set):
    return b"".join(c.path.read_bytes() for c in sorted(chunk_set.chunks, key=lambda c: c.index))


def test_under_ceiling_passes_through(tmp_path):
    artifact = _sparse_artifact(tmp_path, 50_000_000)
    tool = MagicMock(spec=FFmpegTool)

    unit = SizePackager(tool, ceiling=48 * 1024 * 1024).package(artifact)

    assert isinstance(unit, WholeFile)
    assert unit.artifact is artifact
    tool.reencode_to_fit.assert_not_called()


def test_exactly_at_ceiling_passes_through(tmp_path):
    artifact = _artifact(tmp_path, b"x" * 100)
    assert isinstance(SizePackager(None, ceiling=100).package(artifact), WholeFile)


def test_split_when_reencode_unavailable(tmp_path):
    artifact = _sparse_artifact(tmp_path, 100_000_000)

    unit = SizePackager(None, ceiling=50_000_000).package(artifact, tmp_path / "chunks")

    assert isinstance(unit, ChunkSet)
    assert [c.index for c in unit.chunks] == [1, 2]
    assert [os.path.getsize(c.path) for c in unit.chunks] == [50_000_000, 50_000_000]
    assert all(c.total_count == 2 for c in unit.chunks)
    assert unit.source_size == 100_000_000


def test_compression_that_fits_wins(tmp_path):
    artifact = _artifact(tmp_path, b"x" * 1000)
    tool = MagicMock(spec=FFmpegTool)

    def reencode(src, dst, **kwargs):
        dst.write_bytes(b"y" * 400)
        return dst

    tool.reencode_to_fit.side_effect = reencode
    packager = SizePackager(tool, ceiling=500, crf=30, preset="medium", audio_bitrate="96k")

    unit = packager.package(artifact)

    assert isinstance(unit, WholeFile)
    assert unit.artifact.size_bytes == 400
    _, kwargs = tool.reencode_to_fit.call_args
    assert kwargs == {"crf": 30, "preset": "medium", "audio_bitrate": "96k"}


def test_compression_still_too_big_splits_original(tmp_path):
    data = bytes(range(256)) * 4
    artifact = _artifact(tmp_path, data)
    tool = MagicMock(spec=FFmpegTool)

    def reencode(src, dst, **kwargs):
        dst.write_bytes(b"z" * 900)
        return dst

    tool.reencode_to_fit.side_effect = reencode

    unit = SizePackager(tool, ceiling=300).package(artifact, tmp_path / "chunks")

    assert isinstance(unit, ChunkSet)
    assert _reassemble(unit) == data
    assert not list(tmp_path.glob("compressed_*"))


def test_compression_failure_falls_back_to_split(tmp_path):
    data = os.urandom(1000)
    artifact = _artifact(tmp_path, data)
    tool = MagicMock(spec=FFmpegTool)
    tool.reencode_to_fit.side_effect = FFmpegError("libx264 missing")

    unit = SizePackager(tool, ceiling=400).package(artifact, tmp_path / "chunks")

    assert isinstance(unit, ChunkSet)
    assert [os.path.getsize(c.path) for c in unit.chunks] == [400, 400, 200]
    assert _reassemble(unit) == data


def test_compression_disabled_skips_tool(tmp_path):
    artifact = _artifact(tmp_path, b"x" * 10)
    tool = MagicMock(spec=FFmpegTool)

    unit = SizePackager(tool, ceiling=4, enable_compression=False).package(artifact)

    assert isinstance(unit, ChunkSet)
    tool.reencode_to_fit.assert_not_called()


@pytest.mark.parametrize("size,ceiling", [(1, 1), (10, 3), (12, 4), (1000, 999), (7, 100)])
def test_chunk_sizes(tmp_path, size, ceiling):
    data = os.urandom(size)
    artifact = _artifact(tmp_path, data)

    chunks = split_file(artifact, ceiling, tmp_path / "chunks")

    sizes = [os.path.getsize(c.path) for c in chunks.chunks]
    assert all(s == ceiling for s in sizes[:-1])
    assert sizes[-1] == (size % ceiling or ceiling)
    assert _reassemble(chunks) == data


def test_split_io_error_is_packaging_failed(tmp_path):
    artifact = _artifact(tmp_path, b"x" * 10)
    with patch("relay.packager.open", side_effect=OSError("disk full"), create=True):
        with pytest.raises(PackagingFailed):
            split_file(artifact, 4, tmp_path / "chunks")
