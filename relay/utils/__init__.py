"""
Relay utilities.

Provides shared constants and helper functions for the relay package.
"""

from relay.utils.constants import (
    DEFAULT_FILENAME,
    DEFAULT_MAX_UPLOAD_SIZE,
    DEFAULT_NUM_PARTS,
    RESERVED_FILENAMES,
    STREAMABLE_VIDEO_CODEC,
)

__all__ = [
    "DEFAULT_FILENAME",
    "DEFAULT_MAX_UPLOAD_SIZE",
    "DEFAULT_NUM_PARTS",
    "RESERVED_FILENAMES",
    "STREAMABLE_VIDEO_CODEC",
]
