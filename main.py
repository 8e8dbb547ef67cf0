"""
Bot entry point.

Sets up logging, loads configuration, checks external tools, and runs the
update dispatch loop until interrupted.
"""

import logging
import sys
import threading
from typing import Optional

from config_manager import ConfigManager
from dispatcher import UpdateDispatcher
from logger_config import setup_logging
from relay.core import TransferPipeline
from relay.engines.ffmpeg import FFmpegTool
from relay.types import PipelineOptions
from telegram_client import TelegramClient
from utils import check_dependencies

logger = logging.getLogger(__name__)


def required_tools(options: PipelineOptions) -> list:
    """External binaries the configured pipeline will invoke."""
    if options.enable_streamable_check or options.enable_compression:
        return ["ffmpeg", "ffprobe"]
    return []


def build_dispatcher(config: dict) -> UpdateDispatcher:
    options = PipelineOptions.from_config(config)
    pipeline = TransferPipeline(
        options, tool=FFmpegTool(timeout=options.transcode_timeout)
    )
    client = TelegramClient(
        config["bot_token"],
        api_base=config["api_base_url"],
        timeout=(config["connect_timeout"], config["read_timeout"]),
        upload_timeout=config["upload_timeout"],
    )
    return UpdateDispatcher.from_config(client, pipeline, config)


def main(stop_event: Optional[threading.Event] = None) -> int:
    """Run the bot. Returns a process exit code."""
    config = ConfigManager.load_config()
    setup_logging(config.get("log_file", "relaybot.log"))

    if not config.get("bot_token"):
        logger.error("BOT_TOKEN is not set. Exiting...")
        return 1

    try:
        options = PipelineOptions.from_config(config)
    except (TypeError, ValueError) as e:
        logger.error("Invalid pipeline configuration: %s", e)
        return 1

    if check_dependencies(required_tools(options)):
        return 1

    dispatcher = build_dispatcher(config)
    try:
        dispatcher.run_forever(stop_event)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
