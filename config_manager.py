"""
Configuration management module.

Handles loading, saving, and validating bot configuration
with atomic file operations and error recovery.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from relay.utils.constants import DEFAULT_MAX_UPLOAD_SIZE, DEFAULT_NUM_PARTS

logger = logging.getLogger(__name__)

# Configuration file path with fallback
try:
    CONFIG_FILE = Path.home() / ".streamrelay" / "config.json"
except RuntimeError:
    CONFIG_FILE = Path("config.json")

# Checked in order; BOT_TOKEN_ENV is the legacy name
TOKEN_ENV_VARS = ("STREAMRELAY_BOT_TOKEN", "BOT_TOKEN_ENV")

_POSITIVE_INTS = ("num_parts", "max_upload_size")
_POSITIVE_NUMBERS = (
    "connect_timeout",
    "read_timeout",
    "probe_timeout",
    "upload_timeout",
    "poll_interval",
)
_NON_NEGATIVE_NUMBERS = ("long_poll_timeout", "progress_edit_interval")
_BOOLS = (
    "parallel_fetch",
    "enable_streamable_check",
    "enable_compression",
    "skip_backlog",
)
_STRINGS = (
    "bot_token",
    "api_base_url",
    "work_dir",
    "compress_preset",
    "compress_audio_bitrate",
    "log_file",
)

_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)


def _is_number(val: Any) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


class ConfigManager:
    """Manages bot configuration with validation and atomic writes."""

    DEFAULTS: Dict[str, Any] = {
        "bot_token": "",
        "api_base_url": "https://api.telegram.org",
        "work_dir": "",
        "num_parts": DEFAULT_NUM_PARTS,
        "parallel_fetch": False,
        "max_upload_size": DEFAULT_MAX_UPLOAD_SIZE,
        "enable_streamable_check": True,
        "enable_compression": True,
        "compress_crf": 28,
        "compress_preset": "fast",
        "compress_audio_bitrate": "128k",
        "connect_timeout": 15.0,
        "read_timeout": 60.0,
        "probe_timeout": 15.0,
        "transcode_timeout": 3600.0,
        "upload_timeout": 600.0,
        "poll_interval": 1.0,
        "long_poll_timeout": 0,
        "skip_backlog": True,
        "progress_edit_interval": 1.0,
        "log_file": "relaybot.log",
    }

    @staticmethod
    def _resolve_config_file() -> Path:
        """Resolve and return the correct config file path."""
        try:
            config_file = CONFIG_FILE
            if not config_file.parent.exists():
                config_file.parent.mkdir(parents=True, exist_ok=True)
            return config_file
        except OSError:
            # Fallback to local
            return Path("config.json")

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        """
        Validate configuration data.
        """
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a dictionary")

        for key in _BOOLS:
            if key in config and not isinstance(config[key], bool):
                raise ValueError(f"{key} must be a boolean")

        for key in _STRINGS:
            if key in config and not isinstance(config[key], str):
                raise ValueError(f"{key} must be a string")

        for key in _POSITIVE_INTS:
            if key in config:
                val = config[key]
                if not isinstance(val, int) or isinstance(val, bool) or val < 1:
                    raise ValueError(f"{key} must be a positive integer")

        for key in _POSITIVE_NUMBERS:
            if key in config:
                val = config[key]
                if not _is_number(val) or val <= 0:
                    raise ValueError(f"{key} must be a positive number")

        for key in _NON_NEGATIVE_NUMBERS:
            if key in config:
                val = config[key]
                if not _is_number(val) or val < 0:
                    raise ValueError(f"{key} must be a non-negative number")

        if "transcode_timeout" in config and config["transcode_timeout"] is not None:
            val = config["transcode_timeout"]
            if not _is_number(val) or val <= 0:
                raise ValueError("transcode_timeout must be a positive number or null")

        if "compress_crf" in config:
            val = config["compress_crf"]
            if not isinstance(val, int) or isinstance(val, bool) or not 0 <= val <= 51:
                raise ValueError("compress_crf must be an integer between 0 and 51")

        if "compress_preset" in config and config["compress_preset"] not in _PRESETS:
            raise ValueError(f"compress_preset must be one of: {', '.join(_PRESETS)}")

        if "api_base_url" in config:
            val = config["api_base_url"]
            if not val.startswith(("http://", "https://")):
                raise ValueError("api_base_url must start with http:// or https://")

    @staticmethod
    def apply_env_overrides(
        config: Dict[str, Any], environ: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """Take the bot token from the environment when one is set."""
        environ = os.environ if environ is None else environ
        for var in TOKEN_ENV_VARS:
            token = environ.get(var, "").strip()
            if token:
                config["bot_token"] = token
                logger.debug("Bot token taken from %s", var)
                break
        return config

    @staticmethod
    def load_config() -> Dict[str, Any]:
        """
        Load configuration from file with error recovery.
        """
        config_path = ConfigManager._resolve_config_file()
        logger.info("Loading config from %s", config_path)

        config = ConfigManager.DEFAULTS.copy()

        if config_path.exists():
            try:
                # Check for empty file first
                if config_path.stat().st_size == 0:
                    logger.warning("Config file is empty, using defaults")
                    return ConfigManager.apply_env_overrides(config)

                with open(config_path, encoding="utf-8") as f:
                    data = json.load(f)
                    ConfigManager._validate_config(data)
                    config.update(data)
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("Config corrupted/invalid (%s), using defaults", e)
                # Backup corrupted file
                try:
                    backup = config_path.with_suffix(".json.bak")
                    if os.path.exists(backup):
                        os.unlink(backup)
                    config_path.rename(backup)
                except OSError as exc:
                    logger.warning("Failed to backup corrupted config: %s", exc)
            except OSError as e:
                logger.error("Failed to load config: %s", e)

        return ConfigManager.apply_env_overrides(config)

    @staticmethod
    def save_config(config: Dict[str, Any]) -> None:
        """
        Save configuration to file with atomic write operation.
        """
        config_path = ConfigManager._resolve_config_file()
        ConfigManager._validate_config(config)

        temp_path = None

        try:
            if not config_path.parent.exists():
                config_path.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write via temp file
            fd, temp_path = tempfile.mkstemp(
                dir=str(config_path.parent),
                prefix=".config_tmp_",
                suffix=".json",
            )
            # Security: the file holds the bot token
            os.chmod(temp_path, 0o600)

            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, str(config_path))
            try:
                os.chmod(str(config_path), 0o600)
            except OSError:
                logger.warning("Could not set secure permissions on config file")
            logger.info("Configuration saved.")

        except Exception as e:
            logger.error("Failed to save config: %s", e)
            raise

        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError as exc:
                    logger.warning(
                        "Failed to remove temp config file %s: %s", temp_path, exc
                    )
