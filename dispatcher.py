"""
Update dispatch loop.

Polls the Bot API for new messages, runs one transfer per valid URL, and
reports status back through a single editable message per request. The
offset advances past every update once it has been handled, whatever the
outcome, so each update is processed at most once per process lifetime.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from rate_limiter import RateLimiter
from relay.core import TransferPipeline
from relay.errors import DeliveryFailed, PipelineBusy, UnsafeSource
from relay.types import ChunkSet, DeliveryUnit, TransferRequest, TransferResult, WholeFile
from telegram_client import TelegramAPIError, TelegramClient
from utils import is_public_url, validate_url

logger = logging.getLogger(__name__)

START_MESSAGE = "🔄 Starting video processing..."
INVALID_URL_MESSAGE = "❌ Please send a valid URL."
UNEXPECTED_ERROR_MESSAGE = "❌ Unexpected error while processing the file."


@dataclass
class DispatcherState:
    """Process-lifetime dispatch state. ``offset`` only moves forward."""

    offset: Optional[int] = None
    processed: int = 0

    def advance(self, update_id: int) -> None:
        new_offset = update_id + 1
        if self.offset is None or new_offset > self.offset:
            self.offset = new_offset


@dataclass(frozen=True)
class InboundEvent:
    offset: int
    sender_id: Any
    text: str


def parse_update(update: Dict[str, Any]) -> Optional[InboundEvent]:
    """Extract (update_id, chat id, text); None for updates without a chat."""
    message = update.get("message") or update.get("channel_post")
    if not isinstance(message, dict):
        return None
    chat = message.get("chat") or {}
    if "id" not in chat:
        return None
    return InboundEvent(
        offset=update["update_id"],
        sender_id=chat["id"],
        text=message.get("text") or "",
    )


class ProgressMessage:
    """
    One status message edited in place.

    Edits are skipped when the text is unchanged, and intermediate updates
    are throttled; milestones and the final status always go out.
    """

    def __init__(
        self,
        client: TelegramClient,
        chat_id: Any,
        message_id: Optional[int],
        min_interval: float = 1.0,
    ):
        self.client = client
        self.chat_id = chat_id
        self.message_id = message_id
        self.last_text: Optional[str] = None
        self._limiter = RateLimiter(min_interval)

    def update(self, text: str, force: bool = False) -> bool:
        """Edit the message; returns True when an edit was sent."""
        if self.message_id is None or text == self.last_text:
            return False
        if force:
            self._limiter.touch()
        elif not self._limiter.check():
            return False
        try:
            self.client.edit_message_text(self.chat_id, self.message_id, text)
        except TelegramAPIError as e:
            logger.warning("Failed to update status message: %s", e)
            return False
        self.last_text = text
        return True

    def notify(self, text: str) -> bool:
        """Send ``text`` as a new message that the status edits do not overwrite."""
        try:
            self.client.send_message(self.chat_id, text)
        except TelegramAPIError as e:
            logger.warning("Failed to send notice: %s", e)
            return False
        return True

    def hook(self, event: Dict[str, Any]) -> None:
        """Progress hook for TransferPipeline."""
        text = event.get("text")
        if not text:
            return
        if event.get("notice"):
            self.notify(text)
        else:
            self.update(text, force=bool(event.get("milestone")))

    def finish(self, text: str) -> bool:
        return self.update(text, force=True)


class TelegramDeliverer:
    """Uploads a delivery unit to one chat."""

    def __init__(self, client: TelegramClient, chat_id: Any, progress: ProgressMessage):
        self.client = client
        self.chat_id = chat_id
        self.progress = progress

    def __call__(self, unit: DeliveryUnit, filename: str) -> None:
        try:
            if isinstance(unit, WholeFile):
                logger.info("Uploading video %s", filename)
                self.client.send_video(self.chat_id, unit.artifact.path, caption=filename)
            elif isinstance(unit, ChunkSet):
                self._send_chunks(unit, filename)
            else:
                raise DeliveryFailed(f"Unknown delivery unit {type(unit).__name__}")
        except (TelegramAPIError, OSError) as e:
            raise DeliveryFailed(f"Upload of {filename} failed: {e}") from e
        logger.info("File uploaded successfully: %s", filename)

    def _send_chunks(self, unit: ChunkSet, filename: str) -> None:
        total = len(unit)
        for chunk in unit.chunks:
            percent = chunk.index * 100 // total
            self.progress.update(
                f"📤 Uploading part {chunk.index} of {total} ({percent}%)...",
                force=True,
            )
            try:
                self.client.send_document(
                    self.chat_id,
                    chunk.path,
                    caption=f"Part {chunk.index} of {total}: {filename}",
                )
            except TelegramAPIError as e:
                raise DeliveryFailed(
                    f"Failed to upload part {chunk.index} of {total}: {e}"
                ) from e


class UpdateDispatcher:
    """Sequential poll -> validate -> transfer -> acknowledge loop."""

    def __init__(
        self,
        client: TelegramClient,
        pipeline: TransferPipeline,
        poll_interval: float = 1.0,
        long_poll_timeout: int = 0,
        skip_backlog: bool = True,
        progress_edit_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.pipeline = pipeline
        self.poll_interval = poll_interval
        self.long_poll_timeout = long_poll_timeout
        self.skip_backlog = skip_backlog
        self.progress_edit_interval = progress_edit_interval
        self.state = DispatcherState()
        self._sleep = sleep

    @classmethod
    def from_config(
        cls, client: TelegramClient, pipeline: TransferPipeline, config: Dict[str, Any]
    ) -> "UpdateDispatcher":
        return cls(
            client,
            pipeline,
            poll_interval=config.get("poll_interval", 1.0),
            long_poll_timeout=int(config.get("long_poll_timeout", 0)),
            skip_backlog=config.get("skip_backlog", True),
            progress_edit_interval=config.get("progress_edit_interval", 1.0),
        )

    def seed_offset(self) -> None:
        """Move the offset past whatever is already queued."""
        try:
            pending = self.client.get_updates(offset=-1, timeout_s=0)
        except TelegramAPIError as e:
            logger.warning("Could not seed update offset: %s", e)
            return
        if pending:
            latest = max(u["update_id"] for u in pending)
            self.state.advance(latest)
            logger.info("Skipping backlog, starting at offset %d", self.state.offset)

    def poll_once(self) -> int:
        """Fetch and handle one batch. Returns the number of updates seen."""
        updates = self.client.get_updates(
            offset=self.state.offset, timeout_s=self.long_poll_timeout
        )
        for update in updates:
            try:
                self.handle_update(update)
            finally:
                self.state.advance(update["update_id"])
                self.state.processed += 1
        return len(updates)

    def handle_update(self, update: Dict[str, Any]) -> Optional[TransferResult]:
        event = parse_update(update)
        if event is None:
            logger.debug("Ignoring update %s without a chat", update.get("update_id"))
            return None

        text = event.text.strip()
        if not validate_url(text):
            logger.info("Rejected non-URL message from %s", event.sender_id)
            self._notify(event.sender_id, INVALID_URL_MESSAGE)
            return None

        if not is_public_url(text):
            logger.warning("Refused non-public URL from %s: %s", event.sender_id, text)
            self._notify(event.sender_id, UnsafeSource.user_message)
            return None

        return self.process_request(
            TransferRequest(source_url=text, requester_id=event.sender_id)
        )

    def _notify(self, chat_id: Any, text: str) -> None:
        try:
            self.client.send_message(chat_id, text)
        except TelegramAPIError as e:
            logger.warning("Failed to notify %s: %s", chat_id, e)

    def process_request(self, request: TransferRequest) -> Optional[TransferResult]:
        """Run one transfer and leave exactly one final status on its message."""
        chat_id = request.requester_id
        try:
            status = self.client.send_message(chat_id, START_MESSAGE)
        except TelegramAPIError as e:
            logger.error("Cannot report to %s, skipping %s: %s", chat_id, request.source_url, e)
            return None

        progress = ProgressMessage(
            self.client,
            chat_id,
            status.get("message_id"),
            min_interval=self.progress_edit_interval,
        )
        progress.last_text = START_MESSAGE
        request = TransferRequest(
            source_url=request.source_url,
            requester_id=chat_id,
            status_channel=progress.message_id,
        )

        try:
            result = self.pipeline.run(
                request, TelegramDeliverer(self.client, chat_id, progress), progress.hook
            )
        except PipelineBusy as e:
            logger.warning("%s", e)
            progress.finish(e.user_message)
            return None
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected error processing %s", request.source_url)
            progress.finish(UNEXPECTED_ERROR_MESSAGE)
            return None

        progress.finish(result.message)
        return result

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """Poll until ``stop_event`` is set. Never exits because of one request."""
        stop_event = stop_event or threading.Event()
        logger.info("Bot is running...")
        if self.skip_backlog:
            self.seed_offset()

        while not stop_event.is_set():
            try:
                count = self.poll_once()
            except TelegramAPIError as e:
                logger.warning("Polling failed: %s", e)
                count = 0
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Unexpected error in dispatch loop")
                count = 0
            if count == 0:
                self._sleep(self.poll_interval)

        logger.info("Dispatcher stopped after %d updates", self.state.processed)
