"""
Core transfer pipeline.

Drives one request through probe -> range fetch -> merge -> normalize ->
package -> deliver, reporting progress at every stage and purging the
working directory on every exit path.
"""

import logging
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from relay.assembler import assemble_parts
from relay.engines.ffmpeg import FFmpegTool
from relay.engines.http import PartFetcher, probe_remote
from relay.errors import DeliveryFailed, PipelineBusy, TransferError, UnsafeSource
from relay.normalizer import StreamabilityNormalizer
from relay.packager import SizePackager
from relay.planner import plan_ranges
from relay.types import (
    ByteRange,
    DeliveryUnit,
    PartFile,
    PipelineOptions,
    PipelineStage,
    RemoteInfo,
    TransferRequest,
    TransferResult,
)
from utils import format_file_size, is_public_url

logger = logging.getLogger(__name__)

ProgressHook = Callable[[Dict[str, Any]], None]
Deliverer = Callable[[DeliveryUnit, str], None]

SUCCESS_MESSAGE = "✅ File uploaded successfully!"

STAGE_MESSAGES = {
    PipelineStage.PLANNING: "🔍 Checking file...",
    PipelineStage.FETCHING: "📥 Downloading file...",
    PipelineStage.ASSEMBLING: "🔗 Merging file parts...",
    PipelineStage.NORMALIZING: "🔍 Checking if the video is streamable...",
    PipelineStage.PACKAGING: "📦 Preparing file for upload...",
    PipelineStage.DELIVERING: "📤 Uploading file...",
}


class _RunState:
    """Stage bookkeeping for one run."""

    def __init__(self, request: TransferRequest, progress_hook: Optional[ProgressHook]):
        self.request = request
        self.progress_hook = progress_hook
        self.stage = PipelineStage.PLANNING
        self.history: List[PipelineStage] = []
        self.filename: Optional[str] = None

    def emit(self, event: Dict[str, Any]) -> None:
        if not self.progress_hook:
            return
        try:
            self.progress_hook(event)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error in progress hook: %s", e)

    def enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.history.append(stage)
        logger.info("[%s] %s", stage.value, self.request.source_url)
        self.emit({"status": stage.value, "milestone": True, "text": STAGE_MESSAGES[stage]})

    def finish(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.history.append(stage)


class TransferPipeline:
    """
    Runs transfer requests one at a time.

    A second ``run`` while one is active raises PipelineBusy instead of
    sharing the working directory.
    """

    def __init__(
        self,
        options: Optional[PipelineOptions] = None,
        tool: Optional[FFmpegTool] = None,
        session: Optional[requests.Session] = None,
        prober: Callable[..., RemoteInfo] = probe_remote,
        fetcher_factory: Callable[..., PartFetcher] = PartFetcher,
    ):
        self.options = options or PipelineOptions()
        self.options.validate()
        tool = tool or FFmpegTool(timeout=self.options.transcode_timeout)
        self.normalizer = StreamabilityNormalizer(
            tool, enabled=self.options.enable_streamable_check
        )
        self.packager = SizePackager(
            tool,
            ceiling=self.options.max_upload_size,
            enable_compression=self.options.enable_compression,
            crf=self.options.compress_crf,
            preset=self.options.compress_preset,
            audio_bitrate=self.options.compress_audio_bitrate,
        )
        self._session = session
        self._prober = prober
        self._fetcher_factory = fetcher_factory
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _work_root(self) -> Path:
        if self.options.work_dir:
            return Path(self.options.work_dir)
        return Path(tempfile.gettempdir()) / "streamrelay"

    @contextmanager
    def _workspace(self) -> Iterator[Path]:
        """Private working directory for one run, always removed afterwards."""
        root = self._work_root()
        root.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="run_", dir=str(root)))
        try:
            yield workdir
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
            if workdir.exists():
                logger.warning("Could not fully remove working directory %s", workdir)
            else:
                logger.info("Cleaned up temporary files.")

    def run(
        self,
        request: TransferRequest,
        deliver: Deliverer,
        progress_hook: Optional[ProgressHook] = None,
    ) -> TransferResult:
        """
        Process one request end to end.

        Args:
            request: The URL and requester.
            deliver: Called once with the delivery unit and a display name.
            progress_hook: Receives dict events with at least "status" and "text".
                Events with "notice" set are standalone announcements rather
                than status updates.

        Returns:
            TransferResult; stage failures are reported there, never raised.

        Raises:
            PipelineBusy: another run is in progress.
        """
        # pylint: disable=consider-using-with
        if not self._lock.acquire(blocking=False):
            raise PipelineBusy(f"Pipeline busy, rejecting {request.source_url}")
        try:
            return self._run_locked(request, deliver, progress_hook)
        finally:
            self._lock.release()

    def _run_locked(
        self,
        request: TransferRequest,
        deliver: Deliverer,
        progress_hook: Optional[ProgressHook],
    ) -> TransferResult:
        state = _RunState(request, progress_hook)
        with self._workspace() as workdir:
            try:
                self._execute(state, workdir, deliver)
            except TransferError as e:
                failed_in = state.stage
                state.finish(PipelineStage.FAILED)
                logger.error(
                    "Transfer of %s failed during %s: %s",
                    request.source_url,
                    failed_in.value,
                    e,
                )
                return TransferResult(
                    request=request,
                    stage=PipelineStage.FAILED,
                    message=e.user_message,
                    history=state.history,
                    error=e,
                    filename=state.filename,
                )

        state.finish(PipelineStage.DONE)
        return TransferResult(
            request=request,
            stage=PipelineStage.DONE,
            message=SUCCESS_MESSAGE,
            history=state.history,
            filename=state.filename,
        )

    def _execute(self, state: _RunState, workdir: Path, deliver: Deliverer) -> None:
        state.enter(PipelineStage.PLANNING)
        info = self._prober(
            state.request.source_url,
            timeout=self.options.probe_timeout,
            session=self._session,
        )
        if not is_public_url(info.url):
            raise UnsafeSource(f"{state.request.source_url} redirects to non-public {info.url}")
        state.filename = info.filename
        if info.size_known:
            state.emit(
                {
                    "status": PipelineStage.PLANNING.value,
                    "total_bytes": info.total_size,
                    "notice": True,
                    "text": (
                        f"🌐 Total file size: {format_file_size(info.total_size)}. "
                        f"Starting download of {info.filename}..."
                    ),
                }
            )
        else:
            state.emit(
                {
                    "status": PipelineStage.PLANNING.value,
                    "total_bytes": None,
                    "notice": True,
                    "text": "⚠️ Unable to determine file size. Progress tracking will be disabled.",
                }
            )
        part_count = self.options.num_parts if info.accepts_ranges else 1
        plan = plan_ranges(info.total_size, part_count)

        state.enter(PipelineStage.FETCHING)
        parts_dir = workdir / "parts"
        parts_dir.mkdir()
        parts = self._fetch_all(state, info, plan, parts_dir)

        state.enter(PipelineStage.ASSEMBLING)
        media_dir = workdir / "media"
        media_dir.mkdir()
        artifact = assemble_parts(parts, len(plan), media_dir / info.filename)
        shutil.rmtree(parts_dir, ignore_errors=True)

        state.enter(PipelineStage.NORMALIZING)
        artifact = self.normalizer.normalize(artifact)
        state.filename = artifact.path.name

        state.enter(PipelineStage.PACKAGING)
        unit = self.packager.package(artifact, workdir / "chunks")

        state.enter(PipelineStage.DELIVERING)
        try:
            deliver(unit, artifact.path.name)
        except TransferError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise DeliveryFailed(f"Delivery of {artifact.path.name} failed: {e}") from e

    def _fetch_all(
        self,
        state: _RunState,
        info: RemoteInfo,
        plan: List[ByteRange],
        parts_dir: Path,
    ) -> List[PartFile]:
        fetcher = self._fetcher_factory(
            info.url, timeout=self.options.fetch_timeout, session=self._session
        )
        ranged = len(plan) > 1

        def dest(byte_range: ByteRange) -> Path:
            return parts_dir / f"part_{byte_range.index:04d}"

        parts: List[PartFile] = []
        if self.options.parallel_fetch and ranged:
            with ThreadPoolExecutor(
                max_workers=len(plan), thread_name_prefix="RangeFetch"
            ) as executor:
                futures = [
                    executor.submit(fetcher.fetch, r, dest(r), ranged) for r in plan
                ]
                try:
                    # Collect by index, not completion, so progress stays monotonic
                    for byte_range, future in zip(plan, futures):
                        part = future.result()
                        parts.append(part)
                        self._report_part(state, info, plan, byte_range, parts)
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise
        else:
            for byte_range in plan:
                part = fetcher.fetch(byte_range, dest(byte_range), ranged)
                parts.append(part)
                self._report_part(state, info, plan, byte_range, parts)

        logger.info("All %d parts downloaded successfully.", len(parts))
        return parts

    @staticmethod
    def _report_part(
        state: _RunState,
        info: RemoteInfo,
        plan: List[ByteRange],
        byte_range: ByteRange,
        parts: List[PartFile],
    ) -> None:
        downloaded = sum(p.bytes_received for p in parts)
        event: Dict[str, Any] = {
            "status": PipelineStage.FETCHING.value,
            "parts_done": len(parts),
            "total_parts": len(plan),
            "downloaded_bytes": downloaded,
            "total_bytes": info.total_size,
        }
        if info.size_known:
            total = info.total_size or 1
            received = parts[-1].bytes_received
            percent = min(100, (byte_range.start + received) * 100 // total)
            event["_percent_str"] = f"{percent}%"
            event["text"] = f"📥 Downloading... {percent}% completed."
        else:
            event["text"] = f"📥 Downloading part {len(parts)} of {len(plan)}..."
        state.emit(event)
