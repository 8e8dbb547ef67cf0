"""
Concatenates fetched parts into one artifact.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Sequence

from relay.errors import AssemblyIncomplete
from relay.types import Artifact, PartFile

logger = logging.getLogger(__name__)

COPY_BUFFER_BYTES = 1024 * 1024


def verify_parts(parts: Sequence[PartFile], expected_count: int) -> List[PartFile]:
    """
    Check that parts are exactly indexes 0..expected_count-1 and non-empty.

    Returns:
        The parts sorted by index.
    """
    ordered = sorted(parts, key=lambda p: p.index)
    indexes = [p.index for p in ordered]
    if indexes != list(range(expected_count)):
        raise AssemblyIncomplete(
            f"Expected parts 0..{expected_count - 1}, got {indexes}"
        )

    for part in ordered:
        try:
            size = os.path.getsize(part.path)
        except OSError as e:
            raise AssemblyIncomplete(f"Part {part.index} missing: {e}") from e
        if size == 0:
            raise AssemblyIncomplete(f"Part {part.index} is empty")
    return ordered


def assemble_parts(
    parts: Sequence[PartFile], expected_count: int, dest: Path
) -> Artifact:
    """
    Append every part byte-for-byte, in index order, into ``dest``.

    Raises:
        AssemblyIncomplete: a part is missing, duplicated, empty, or the
            merge could not be written.
    """
    ordered = verify_parts(parts, expected_count)
    logger.info("Merging %d parts into %s", len(ordered), dest.name)

    try:
        with open(dest, "wb") as out:
            for part in ordered:
                with open(part.path, "rb") as src:
                    shutil.copyfileobj(src, out, COPY_BUFFER_BYTES)
    except OSError as e:
        raise AssemblyIncomplete(f"Merging failed: {e}") from e

    artifact = Artifact.from_path(dest)
    logger.info("File successfully merged: %s (%d bytes)", dest.name, artifact.size_bytes)
    return artifact
