"""
Shared constants for the relay pipeline.
"""

# Windows device names that must never be used as a bare file name
RESERVED_FILENAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

DEFAULT_FILENAME = "downloaded_file"

# 48MB, safely below the Bot API's 50MB upload limit
DEFAULT_MAX_UPLOAD_SIZE = 48 * 1024 * 1024

DEFAULT_NUM_PARTS = 5

# Codec that plays progressively in every Telegram client
STREAMABLE_VIDEO_CODEC = "h264"
