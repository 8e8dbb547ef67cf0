"""
Data model and option dataclasses for the relay pipeline.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from relay.utils.constants import DEFAULT_MAX_UPLOAD_SIZE, DEFAULT_NUM_PARTS


class PipelineStage(str, Enum):
    """States of a single transfer run."""

    PLANNING = "planning"
    FETCHING = "fetching"
    ASSEMBLING = "assembling"
    NORMALIZING = "normalizing"
    PACKAGING = "packaging"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferRequest:
    """A recognized URL plus who asked for it and where to report status."""

    source_url: str
    requester_id: Any
    status_channel: Any = None


@dataclass(frozen=True)
class ByteRange:
    """One entry of a range plan. ``end`` is inclusive; None means to EOF."""

    index: int
    start: int
    end: Optional[int] = None

    @property
    def is_open_ended(self) -> bool:
        return self.end is None

    @property
    def length(self) -> Optional[int]:
        if self.end is None:
            return None
        return self.end - self.start + 1

    def header_value(self) -> str:
        """Value for the HTTP ``Range`` header."""
        end = "" if self.end is None else str(self.end)
        return f"bytes={self.start}-{end}"


@dataclass
class RemoteInfo:
    """Result of probing the source before planning."""

    url: str
    filename: str
    total_size: Optional[int] = None
    accepts_ranges: bool = True

    @property
    def size_known(self) -> bool:
        return bool(self.total_size)


@dataclass
class PartFile:
    """A fetched byte range on disk."""

    index: int
    path: Path
    bytes_received: int = 0


@dataclass
class Artifact:
    """The merged media file at its current pipeline stage."""

    path: Path
    size_bytes: int = 0

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Artifact":
        path = Path(path)
        return cls(path=path, size_bytes=os.path.getsize(path))


@dataclass(frozen=True)
class Chunk:
    """One piece of a split artifact. Indexes start at 1."""

    index: int
    path: Path
    total_count: int


@dataclass
class WholeFile:
    """Delivery unit: a single playable file."""

    artifact: Artifact


@dataclass
class ChunkSet:
    """Delivery unit: ordered fixed-size pieces of an oversized artifact."""

    chunks: List[Chunk]
    source_name: str
    source_size: int = 0

    def __len__(self) -> int:
        return len(self.chunks)


DeliveryUnit = Union[WholeFile, ChunkSet]


@dataclass
class TransferResult:
    """Outcome of one pipeline run. ``message`` is the final status text."""

    request: TransferRequest
    stage: PipelineStage
    message: str
    history: List[PipelineStage] = field(default_factory=list)
    error: Optional[Exception] = None
    filename: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.stage == PipelineStage.DONE


@dataclass
class PipelineOptions:
    """Options for controlling the transfer pipeline."""

    work_dir: str = ""
    num_parts: int = DEFAULT_NUM_PARTS
    parallel_fetch: bool = False
    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE
    enable_streamable_check: bool = True
    enable_compression: bool = True
    compress_crf: int = 28
    compress_preset: str = "fast"
    compress_audio_bitrate: str = "128k"
    connect_timeout: float = 15.0
    read_timeout: float = 60.0
    probe_timeout: float = 15.0
    transcode_timeout: Optional[float] = 3600.0

    def validate(self):
        """Perform validation on the options."""
        if self.num_parts < 1:
            raise ValueError("num_parts must be at least 1")
        if self.max_upload_size < 1:
            raise ValueError("max_upload_size must be positive")
        if self.compress_crf < 0 or self.compress_crf > 51:
            raise ValueError("compress_crf must be between 0 and 51")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("Timeouts must be positive")

    @property
    def fetch_timeout(self):
        """(connect timeout, read timeout) tuple for requests."""
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineOptions":
        """Build options from a loaded configuration dict."""
        names = cls.__dataclass_fields__.keys()  # pylint: disable=no-member
        options = cls(**{k: config[k] for k in names if k in config})
        options.validate()
        return options
