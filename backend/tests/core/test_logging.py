"""
Tests for structured logging configuration.
"""

from datetime import date
from decimal import Decimal

import structlog

from apps.core.logging import (
    _render_money_and_dates,
    _rename_correlation_id,
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_json_format(self):
        configure_logging(json_format=True, log_level="INFO")

        assert structlog.is_configured()

    def test_configure_logging_console_format(self):
        configure_logging(json_format=False, log_level="DEBUG")

        assert structlog.is_configured()

    def test_get_logger_returns_logger(self):
        assert get_logger("test.module") is not None


class TestProcessors:
    def test_correlation_id_renamed_to_trace_id(self):
        event = _rename_correlation_id(None, "info", {"event": "x", "correlation_id": "abc"})

        assert event == {"event": "x", "trace_id": "abc"}

    def test_decimal_and_date_rendered_as_strings(self):
        event = _render_money_and_dates(
            None,
            "info",
            {"event": "x", "amount": Decimal("5000.00"), "day": date(2024, 1, 15), "n": 3},
        )

        assert event["amount"] == "5000.00"
        assert event["day"] == "2024-01-15"
        assert event["n"] == 3


class TestContextVars:
    def setup_method(self):
        clear_contextvars()

    def teardown_method(self):
        clear_contextvars()

    def test_bind_and_clear(self):
        bind_contextvars(correlation_id="req-1", **{"usr.id": 4})

        assert structlog.contextvars.get_contextvars() == {"correlation_id": "req-1", "usr.id": 4}

        clear_contextvars()

        assert structlog.contextvars.get_contextvars() == {}
