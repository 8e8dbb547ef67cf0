"""
Relay package.

This package provides the chunked transfer and media normalization pipeline:
- Byte-range planning and fetching
- Deterministic reassembly
- Streamability normalization (ffmpeg)
- Size-constrained repackaging
"""

from relay.core import TransferPipeline
from relay.errors import PipelineBusy, TransferError
from relay.types import (
    ChunkSet,
    PipelineOptions,
    PipelineStage,
    TransferRequest,
    TransferResult,
    WholeFile,
)

__all__ = [
    "TransferPipeline",
    "PipelineBusy",
    "TransferError",
    "ChunkSet",
    "PipelineOptions",
    "PipelineStage",
    "TransferRequest",
    "TransferResult",
    "WholeFile",
]
