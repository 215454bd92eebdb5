"""Tests for logging configuration."""

import json
import logging

import pytest

from gitosu.config import GitOsuSettings, configure_logging, get_logger
from gitosu.config.logging import NOISY_LOGGERS


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging(GitOsuSettings())


class TestConfigureLogging:
    """Test configure_logging."""

    def test_sets_root_level(self):
        configure_logging(GitOsuSettings(log_level="INFO"))
        assert logging.getLogger().level == logging.INFO

    def test_quiets_noisy_loggers(self):
        configure_logging(GitOsuSettings(log_level="DEBUG"))
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_debug_keeps_noisy_loggers(self):
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)
        configure_logging(GitOsuSettings(log_level="DEBUG", debug=True))
        assert logging.getLogger("git.cmd").level == logging.NOTSET

    def test_log_file_receives_json(self, tmp_path):
        log_file = tmp_path / "logs" / "gitosu.log"
        configure_logging(
            GitOsuSettings(log_level="INFO", log_format="json", log_file=log_file)
        )
        get_logger("gitosu.tests").info("Imported archive", identity="Artist - Title")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "Imported archive"
        assert record["identity"] == "Artist - Title"
        assert record["level"] == "info"

    def test_structlog_events_reach_caplog(self, caplog):
        configure_logging(GitOsuSettings(log_level="INFO"))
        with caplog.at_level(logging.INFO):
            get_logger("gitosu.caplog").warning("Pending archive disappeared", path="x.osz")
        assert "Pending archive disappeared" in caplog.text
