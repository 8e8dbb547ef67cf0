"""
Error taxonomy for the transfer pipeline.

Each stage converts library failures (requests, OSError, subprocess) into one
of these, so the pipeline boundary can map any failure to a single user-facing
status line.
"""

from typing import Optional


class TransferError(Exception):
    """Base class for all pipeline stage failures."""

    user_message = "❌ Processing failed!"

    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class PlanningError(TransferError):
    """Size probe was ambiguous. Degrades to the unknown-size plan."""

    user_message = "❌ Unable to plan the download."


class FetchFailed(TransferError):
    """A byte range could not be fetched (transport error or empty range)."""

    user_message = "❌ Download failed!"

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message, user_message=user_message)
        self.index = index
        self.status_code = status_code


class AssemblyIncomplete(TransferError):
    """A planned part is missing, duplicated or empty."""

    user_message = "❌ File merging failed!"


class NormalizationFailed(TransferError):
    """Codec inspection, remux or transcode failed."""

    user_message = (
        "❌ Streamable check or re-encoding failed! "
        "Please ensure the video format is supported."
    )


class PackagingFailed(TransferError):
    """Splitting hit a storage error, or the re-encode tool failed."""

    user_message = "❌ Preparing the file for upload failed!"


class DeliveryFailed(TransferError):
    """Uploading a delivery unit to the requester failed."""

    user_message = "❌ Upload failed!"


class PipelineBusy(TransferError):
    """A transfer is already running."""

    user_message = "⏳ Another file is being processed. Please try again later."


class UnsafeSource(TransferError):
    """The source, or a redirect it leads to, points at a non-public host."""

    user_message = "❌ This address is not allowed. Please send a public URL."
