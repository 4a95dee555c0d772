"""Tests for logging configuration."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from codescribe.core.logs import LOGGER_NAME, configure_logging


class TestConfigureLogging:
    """Test configure_logging."""

    def test_console_handler_at_configured_level(self, isolated_config):
        """Test a Rich handler is installed at the configured level."""
        logger = configure_logging(isolated_config({"logging": {"level": "warning"}}), console=Console(file=None))

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.WARNING
        assert [type(h) for h in logger.handlers] == [RichHandler]
        assert logger.propagate is False

    def test_verbose_forces_debug(self, isolated_config):
        """Test verbose overrides the configured level."""
        logger = configure_logging(isolated_config(), verbose=True)
        assert logger.level == logging.DEBUG

    def test_file_handler(self, isolated_config, tmp_path):
        """Test a file path in logging.file adds a file handler."""
        log_file = tmp_path / "logs" / "codescribe.log"
        config = isolated_config({"logging": {"file": str(log_file), "console": False}})

        logger = configure_logging(config)
        logging.getLogger("codescribe.core.engine").info("hello from engine")
        for handler in logger.handlers:
            handler.flush()

        assert "hello from engine" in log_file.read_text()

    def test_reconfigure_replaces_handlers(self, isolated_config):
        """Test repeated calls do not stack handlers."""
        configure_logging(isolated_config())
        logger = configure_logging(isolated_config())
        assert len(logger.handlers) == 1

    def test_no_outputs_uses_null_handler(self, isolated_config):
        """Test disabling every output leaves a NullHandler."""
        logger = configure_logging(isolated_config({"logging": {"console": False}}))
        assert [type(h) for h in logger.handlers] == [logging.NullHandler]
