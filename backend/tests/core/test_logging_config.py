"""
Tests for logging setup.
"""

import logging
from unittest.mock import patch

from app.core.logging_config import LOG_FORMAT, configure_logging


class TestConfigureLogging:
    """Test root and driver logger levels."""

    def test_uses_requested_level(self):
        with patch("app.core.logging_config.logging.basicConfig") as basic_config:
            configure_logging("warning")

        basic_config.assert_called_once_with(level=logging.WARNING, format=LOG_FORMAT)

    def test_unknown_level_falls_back_to_info(self):
        with patch("app.core.logging_config.logging.basicConfig") as basic_config:
            configure_logging("chatty")

        assert basic_config.call_args.kwargs["level"] == logging.INFO

    def test_driver_logger_follows_debug_flag(self):
        with patch("app.core.logging_config.logging.basicConfig"), \
                patch("app.core.logging_config.settings.DEBUG", True):
            configure_logging("info")

        assert logging.getLogger("teachassist").level == logging.DEBUG

        with patch("app.core.logging_config.logging.basicConfig"), \
                patch("app.core.logging_config.settings.DEBUG", False):
            configure_logging("info")

        assert logging.getLogger("teachassist").level == logging.INFO
