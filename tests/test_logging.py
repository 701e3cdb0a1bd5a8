"""Tests for structured logging setup."""

import json
import logging

import pytest
import structlog

from ai_governor.services.monitoring import ServiceJsonFormatter, setup_logging


@pytest.fixture
def restore_logging():
    root_logger = logging.getLogger()
    level = root_logger.level
    handlers = root_logger.handlers[:]
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:

    def test_installs_json_handler(self, restore_logging):
        handler = setup_logging("WARNING")

        assert isinstance(handler.formatter, ServiceJsonFormatter)
        assert handler in logging.getLogger().handlers
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, restore_logging):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_stdlib_records_carry_service_fields(self, restore_logging):
        handler = setup_logging("INFO")
        record = logging.LogRecord(
            "ai_governor", logging.INFO, __file__, 1, "window reset", None, None
        )

        payload = json.loads(handler.formatter.format(record))
        assert payload["message"] == "window reset"
        assert payload["level"] == "INFO"
        assert payload["service"] == "ai-request-governor"
        assert "environment" in payload
