"""
Logging configuration module.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

# Module-level flag to prevent re-initialization
_LOGGING_INITIALIZED = False


def setup_logging(log_file: str = "relaybot.log"):
    """Setup comprehensive logging configuration."""
    global _LOGGING_INITIALIZED  # pylint: disable=global-statement

    # Prevent re-initialization which would clear handlers from other modules
    if _LOGGING_INITIALIZED:
        logging.debug("Logging already initialized, skipping setup")
        return

    log_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        root_logger.handlers.clear()

    # Console Handler (INFO+)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(log_formatter)
    root_logger.addHandler(console_handler)

    # requests/urllib3 are chatty at DEBUG and would log the bot token in URLs
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # File Handler (DEBUG+, Rotating)
    # Log to both the working directory and the user home (persistence)
    home_log = Path.home() / ".streamrelay" / "relaybot.log"
    try:
        home_log.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        home_log = Path("app.log")

    log_files = [Path(log_file), home_log]

    # Deduplicate paths while preserving order
    seen = set()
    ordered_unique_log_files = []
    for path in log_files:
        if path not in seen:
            seen.add(path)
            ordered_unique_log_files.append(path)

    for path in ordered_unique_log_files:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                path, maxBytes=5 * 1024 * 1024, backupCount=2, encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(log_formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Failed to setup log file {path}: {e}", file=sys.stderr)

    _LOGGING_INITIALIZED = True
    logging.info("Logging initialized successfully.")
