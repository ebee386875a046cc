"""
Tests for structured logging configuration.
"""

import logging

import structlog
from structlog.contextvars import get_contextvars

from apps.core.logging import (
    _convert_duration_to_nanoseconds,
    _rename_correlation_id,
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
    unbind_contextvars,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def teardown_method(self):
        configure_logging(json_format=False, log_level="INFO")

    def test_json_format(self):
        configure_logging(json_format=True, log_level="INFO")

        assert structlog.is_configured()
        assert logging.getLogger().level == logging.INFO

    def test_console_format_and_level(self):
        configure_logging(json_format=False, log_level="debug")

        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(json_format=True, log_level="chatty")

        assert logging.getLogger().level == logging.INFO


class TestProcessors:
    """Tests for the custom event dict processors."""

    def test_correlation_id_renamed_to_trace_id(self):
        event_dict = _rename_correlation_id(None, "info", {"correlation_id": 123})

        assert event_dict == {"trace_id": "123"}

    def test_event_without_correlation_id_untouched(self):
        assert _rename_correlation_id(None, "info", {"event": "x"}) == {"event": "x"}

    def test_duration_ms_converted_to_nanoseconds(self):
        event_dict = _convert_duration_to_nanoseconds(None, "info", {"duration_ms": 150.5})

        assert event_dict == {"duration": 150_500_000}

    def test_null_duration_dropped(self):
        assert _convert_duration_to_nanoseconds(None, "info", {"duration_ms": None}) == {}


class TestContextVars:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_contextvars()

    def teardown_method(self):
        clear_contextvars()

    def test_bind_with_dotted_keys(self):
        bind_contextvars(**{"integration.id": "int_123", "delivery.id": "dlv_456"})

        ctx = get_contextvars()
        assert ctx["integration.id"] == "int_123"
        assert ctx["delivery.id"] == "dlv_456"

    def test_unbind_removes_only_named_keys(self):
        bind_contextvars(correlation_id="abc", **{"delivery.id": "dlv_456"})

        unbind_contextvars("delivery.id")

        assert get_contextvars() == {"correlation_id": "abc"}

    def test_clear_removes_all_context(self):
        bind_contextvars(correlation_id="abc", **{"integration.id": "int_123"})
        clear_contextvars()

        assert get_contextvars() == {}


class TestLogOutput:
    """Tests for actual log output."""

    def setup_method(self):
        clear_contextvars()
        configure_logging(json_format=True, log_level="DEBUG")

    def teardown_method(self):
        clear_contextvars()

    def test_event_reaches_stdlib_logging(self, caplog):
        logger = get_logger("tests.logging.output")
        bind_contextvars(correlation_id="corr-123")

        with caplog.at_level(logging.DEBUG, logger="tests.logging.output"):
            logger.info("integration_delivery_attempted", status="success")

        assert "integration_delivery_attempted" in caplog.text

    def test_exception_is_logged(self, caplog):
        logger = get_logger("tests.logging.exception")

        with caplog.at_level(logging.DEBUG, logger="tests.logging.exception"):
            try:
                raise ValueError("Test error")
            except ValueError:
                logger.exception("integration_delivery_worker_error")

        assert "integration_delivery_worker_error" in caplog.text
