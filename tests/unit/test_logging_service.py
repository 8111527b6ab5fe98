"""Tests for logging service configuration."""

import logging
import tempfile
from pathlib import Path

from src.services.logging import get_log_level, setup_server_logging


class TestServerLogging:
    """Test server logging configuration."""

    def setup_method(self):
        """Save original handlers before each test."""
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level

    def teardown_method(self):
        """Restore original handlers after each test."""
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)

    def test_creates_log_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "test_logs" / "server.log"
            assert not log_file.parent.exists()

            setup_server_logging(str(log_file))

            assert log_file.parent.exists()

    def test_stdout_and_file_handlers(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            setup_server_logging(str(Path(temp_dir) / "server.log"))

            assert len(self.root_logger.handlers) == 2

    def test_stdout_only_without_log_file(self) -> None:
        setup_server_logging(None)

        assert len(self.root_logger.handlers) == 1

    def test_level_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert get_log_level() == logging.WARNING

        monkeypatch.setenv("LOG_LEVEL", "nonsense")
        assert get_log_level() == logging.INFO

    def test_sqlalchemy_engine_quieted(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        setup_server_logging(None)

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
