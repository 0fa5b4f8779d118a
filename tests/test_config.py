"""
Tests for configuration loading and logging setup.
"""

import io
import logging

import pytest

from invoice_engine.config import CONFIG_ENV_VAR, ConfigurationManager, get_config
from invoice_engine.utils.logger import ROOT_LOGGER_NAME, get_logger, setup_logger, setup_logger_from_config


class TestConfigurationManager:
    """Tests for ConfigurationManager."""

    def test_packaged_defaults(self):
        assert get_config("ocr.timeout_seconds") == 30
        assert get_config("pipeline.ok_threshold") == 0.4
        assert get_config("arbitration.low_confidence_threshold") == 40

    def test_missing_key_default(self):
        assert get_config("ocr.nope", "fallback") == "fallback"
        assert get_config("ocr.timeout_seconds.deeper", 5) == 5

    def test_singleton(self):
        assert ConfigurationManager() is ConfigurationManager()

    def test_set_override(self):
        ConfigurationManager().set("output.database.enabled", False)
        ConfigurationManager().set("brand.new.key", 3)
        assert get_config("output.database.enabled") is False
        assert get_config("brand.new.key") == 3

    def test_reset_drops_overrides(self):
        ConfigurationManager().set("pipeline.ok_threshold", 0.9)
        ConfigurationManager.reset()
        assert get_config("pipeline.ok_threshold") == 0.4

    def test_env_var_path(self, tmp_path, monkeypatch):
        settings = tmp_path / "custom.yaml"
        settings.write_text("pipeline:\n  ok_threshold: 0.7\npaths:\n  output_dir: runs\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(settings))
        monkeypatch.chdir(tmp_path)

        assert get_config("pipeline.ok_threshold") == 0.7
        assert get_config("paths.output_dir") == str(tmp_path / "runs")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(tmp_path / "absent.yaml"))


class TestLogger:
    """Tests for the logging helpers."""

    def test_namespacing(self):
        assert get_logger("scripts.backfill").name == f"{ROOT_LOGGER_NAME}.scripts.backfill"
        assert get_logger("invoice_engine.pipeline").name == "invoice_engine.pipeline"

    def test_stream_and_level(self):
        stream = io.StringIO()
        logger = setup_logger(level="WARNING", colorize=False, stream=stream)

        get_logger("tests").info("hidden")
        get_logger("tests").warning("shown")

        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert "shown" in stream.getvalue()
        assert "hidden" not in stream.getvalue()

    def test_from_config_uses_overrides(self):
        ConfigurationManager().set("logging.level", "DEBUG")
        logger = setup_logger_from_config()
        assert logger.level == logging.DEBUG
