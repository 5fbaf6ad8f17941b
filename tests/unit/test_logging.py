"""Tests for structured logging functionality.

Tests logging configuration, context binding, and lifecycle log helpers.
"""

import os

import pytest
import structlog

from storekit_service.logging_config import (
    add_app_context,
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    redact_secrets,
)
from storekit_service.models import LoggingConfig, TransactionState
from storekit_service.state_logger import (
    log_request_replaced,
    log_restore_session_completed,
    log_transaction_finished,
    log_transaction_update,
)


@pytest.fixture(scope="module")
def setup_logging():
    """Configure logging for all tests in this module."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_format = os.getenv("LOG_FORMAT", "console")
    configure_logging(log_level=log_level, json_format=log_format.lower() == "json")
    yield


@pytest.fixture(autouse=True)
def cleanup_context():
    """Ensure context is cleared before and after each test."""
    clear_context()
    yield
    clear_context()


class TestProcessors:
    """Test custom processors."""

    def test_app_context_added(self):
        event = add_app_context(None, "info", {"event": "x"})
        assert event["app"] == "storekit-service"

    def test_secrets_redacted(self):
        event = redact_secrets(None, "info", {"event": "x", "shared_secret": "s3cr3t", "password": None})

        assert event["shared_secret"] == "***"
        assert event["password"] is None

    def test_other_fields_untouched(self):
        event = redact_secrets(None, "info", {"event": "x", "product_id": "premium.monthly"})
        assert event["product_id"] == "premium.monthly"


class TestBasicLogging:
    """Test basic logging at different levels."""

    def test_all_levels(self, setup_logging):
        """Test logging at all levels in sequence."""
        logger = get_logger("test.basic")

        logger.debug("debug_message", detail="Only visible in DEBUG mode")
        logger.info("info_message", version="0.1.0")
        logger.warning("warning_message", key="shared_secret", using_default=True)
        logger.error("error_message", host="buy.itunes.apple.com", retry_count=0)

    def test_exception_logging_with_traceback(self, setup_logging):
        """Test logging exceptions with stack traces."""
        logger = get_logger("test.exceptions")

        try:
            {"status": 0}["receipt"]
        except KeyError as e:
            logger.error("receipt_field_missing", error=str(e), exc_info=True)


class TestContextualLogging:
    """Test logging with bound context."""

    def test_bound_context_is_merged(self, setup_logging):
        """Test that bound context variables appear in the event dict."""
        bind_context(request_id="products_req_1", product_id="premium.monthly")

        merged = structlog.contextvars.merge_contextvars(None, "info", {"event": "x"})

        assert merged["request_id"] == "products_req_1"
        assert merged["product_id"] == "premium.monthly"


class TestJsonOutput:
    """Test JSON rendering."""

    def test_json_renderer_selected(self):
        """Test that JSON mode ends the processor chain with the JSON renderer."""
        configure_logging(log_level="INFO", json_format=True)

        processors = structlog.get_config()["processors"]

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert add_app_context in processors

    def test_console_renderer_selected(self):
        """Test that console mode ends the processor chain with the console renderer."""
        configure_logging(log_level="DEBUG", json_format=False)

        processors = structlog.get_config()["processors"]

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_configure_from_settings_overrides(self):
        """Test that explicit arguments win over the configured values."""
        configure_from_settings(LoggingConfig(level="INFO", format="json"), log_format="console")

        processors = structlog.get_config()["processors"]

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestLifecycleLogging:
    """Test transaction and request lifecycle helpers."""

    def test_transaction_helpers(self, setup_logging):
        log_transaction_update(
            "local_txn_a1b2c3d4e5f6a7b8_1700000000000",
            "premium.monthly",
            TransactionState.PURCHASED,
            has_pending_request=True,
        )
        log_transaction_finished("short-id", "premium.monthly", "failed")

    def test_request_helpers(self, setup_logging):
        log_request_replaced("purchase", key="premium.monthly")
        log_restore_session_completed("failed", 2, reason="not signed in")
