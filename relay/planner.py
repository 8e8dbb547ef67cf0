"""
Byte-range planning for chunked fetches.
"""

import logging
from typing import List, Optional

from relay.types import ByteRange

logger = logging.getLogger(__name__)


def plan_ranges(total_size: Optional[int], part_count: int) -> List[ByteRange]:
    """
    Partition ``[0, total_size)`` into ``part_count`` contiguous ranges.

    Boundaries use floor division, so ``part i`` covers
    ``[i * total // n, (i + 1) * total // n - 1]``. The last range is left
    open-ended to tolerate a source that under-reports its length. An unknown
    or zero size collapses to a single open-ended range.

    Args:
        total_size: Size in bytes, or None when the probe gave no answer.
        part_count: Number of ranges wanted (>= 1).

    Returns:
        Ranges sorted by index.
    """
    if part_count < 1:
        raise ValueError(f"part_count must be >= 1, got {part_count}")
    if total_size is not None and total_size < 0:
        raise ValueError(f"total_size must be >= 0, got {total_size}")

    if not total_size:
        logger.debug("Unknown size, planning a single whole-file range")
        return [ByteRange(index=0, start=0, end=None)]

    # Never plan more ranges than bytes; empty ranges would fail the fetch
    count = min(part_count, total_size)

    plan = []
    for i in range(count):
        start = i * total_size // count
        end: Optional[int] = (i + 1) * total_size // count - 1
        if i == count - 1:
            end = None
        plan.append(ByteRange(index=i, start=start, end=end))

    logger.debug("Planned %d ranges for %d bytes", len(plan), total_size)
    return plan
