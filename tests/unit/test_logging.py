"""
Unit tests for logging setup.
"""

import logging
import sys

import pytest

from httpfetch.core.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_explicit_level_and_format(self, restore_root_logger):
        setup_logging("DEBUG", "%(levelname)s|%(message)s")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert root.handlers[0].formatter._fmt == "%(levelname)s|%(message)s"

    def test_writes_to_stderr(self, restore_root_logger):
        setup_logging("INFO")

        assert restore_root_logger.handlers[0].stream is sys.stderr

    def test_quietens_http_libraries(self, restore_root_logger):
        setup_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
