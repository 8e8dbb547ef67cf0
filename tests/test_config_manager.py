# pylint: disable=line-too-long, missing-module-docstring, missing-class-docstring, missing-function-docstring, protected-access
"""
Tests for ConfigManager.
"""

import json
import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from config_manager import ConfigManager


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()  # pylint: disable=consider-using-with
        self.addCleanup(tmp.cleanup)
        self.config_path = Path(tmp.name) / "config.json"
        self.patcher = patch("config_manager.CONFIG_FILE", self.config_path)
        self.patcher.start()
        self.addCleanup(self.patcher.stop)
        env = patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("STREAMRELAY_BOT_TOKEN", None)
        os.environ.pop("BOT_TOKEN_ENV", None)

    def _write(self, text):
        self.config_path.write_text(text, encoding="utf-8")

    def test_load_config_defaults(self):
        config = ConfigManager.load_config()
        self.assertEqual(config["num_parts"], 5)
        self.assertEqual(config["max_upload_size"], 48 * 1024 * 1024)
        self.assertTrue(config["enable_streamable_check"])
        self.assertEqual(config["bot_token"], "")

    def test_load_config_empty_file(self):
        self._write("")
        self.assertEqual(ConfigManager.load_config(), ConfigManager.DEFAULTS)

    def test_load_config_merges_file(self):
        self._write(json.dumps({"num_parts": 3, "parallel_fetch": True}))
        config = ConfigManager.load_config()
        self.assertEqual(config["num_parts"], 3)
        self.assertTrue(config["parallel_fetch"])
        self.assertEqual(config["compress_crf"], 28)

    def test_corrupt_file_is_backed_up(self):
        self._write("{not json")
        config = ConfigManager.load_config()
        self.assertEqual(config["num_parts"], 5)
        self.assertFalse(self.config_path.exists())
        self.assertEqual(
            self.config_path.with_suffix(".json.bak").read_text(encoding="utf-8"),
            "{not json",
        )

    def test_invalid_values_fall_back_to_defaults(self):
        self._write(json.dumps({"num_parts": 0}))
        self.assertEqual(ConfigManager.load_config()["num_parts"], 5)

    def test_token_from_environment(self):
        self._write(json.dumps({"bot_token": "from-file"}))
        with patch.dict(os.environ, {"BOT_TOKEN_ENV": " from-env "}):
            self.assertEqual(ConfigManager.load_config()["bot_token"], "from-env")

    def test_env_precedence(self):
        config = ConfigManager.apply_env_overrides(
            {"bot_token": ""},
            {"STREAMRELAY_BOT_TOKEN": "new", "BOT_TOKEN_ENV": "old"},
        )
        self.assertEqual(config["bot_token"], "new")

    def test_blank_env_token_is_ignored(self):
        config = ConfigManager.apply_env_overrides({"bot_token": "keep"}, {"BOT_TOKEN_ENV": "  "})
        self.assertEqual(config["bot_token"], "keep")

    def test_validate_config(self):
        valid = dict(ConfigManager.DEFAULTS)
        ConfigManager._validate_config(valid)
        ConfigManager._validate_config({"transcode_timeout": None})

        invalid = [
            ["not", "a", "dict"],
            {"parallel_fetch": "yes"},
            {"bot_token": 5},
            {"num_parts": -1},
            {"num_parts": True},
            {"max_upload_size": 1.5},
            {"read_timeout": 0},
            {"long_poll_timeout": -1},
            {"transcode_timeout": "1h"},
            {"compress_crf": 52},
            {"compress_preset": "ludicrous"},
            {"api_base_url": "ftp://api.telegram.org"},
        ]
        for config in invalid:
            with self.subTest(config=config):
                with self.assertRaises(ValueError):
                    ConfigManager._validate_config(config)

    def test_save_config_round_trip_and_permissions(self):
        config = dict(ConfigManager.DEFAULTS, bot_token="123:abc", num_parts=2)
        ConfigManager.save_config(config)

        self.assertEqual(json.loads(self.config_path.read_text(encoding="utf-8")), config)
        mode = stat.S_IMODE(self.config_path.stat().st_mode)
        if os.name == "posix":
            self.assertEqual(mode, 0o600)
        leftovers = [p for p in self.config_path.parent.iterdir() if p.name.startswith(".config_tmp_")]
        self.assertEqual(leftovers, [])

    def test_save_invalid_config_writes_nothing(self):
        with self.assertRaises(ValueError):
            ConfigManager.save_config({"num_parts": "five"})
        self.assertFalse(self.config_path.exists())

    def test_save_failure_removes_temp_file(self):
        with patch("config_manager.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                ConfigManager.save_config({"num_parts": 2})
        self.assertEqual(list(self.config_path.parent.iterdir()), [])


if __name__ == "__main__":
    unittest.main()
