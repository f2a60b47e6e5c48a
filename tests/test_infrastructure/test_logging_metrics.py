"""
Test infrastructure components: logging, metrics and retry.

These tests verify the production hardening infrastructure works correctly.
"""

import sqlite3

import pytest
from prometheus_client import REGISTRY

from envelope_ledger.kernel.errors import ValidationError
from envelope_ledger.kernel.logging import (
    LogOperation,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from envelope_ledger.kernel.metrics import track_operation
from envelope_ledger.kernel.retry import is_lock_error, retry_on_sqlite_lock


def sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        """Test logging configuration for console output."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)
        assert logger is not None

    def test_configure_logging_json(self) -> None:
        """Test logging configuration for JSON output."""
        configure_logging(json_output=True, log_level="DEBUG")
        logger = get_logger(__name__)
        assert logger is not None

    def test_correlation_id(self) -> None:
        """Test correlation ID context management."""
        cid = get_correlation_id()
        assert cid
        assert get_correlation_id() == cid

        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_redact_context(self) -> None:
        """Money and free-text fields never reach the logs"""
        redacted = redact_context({"amount": 5000, "memo": "rent", "category_id": "c1"})
        assert redacted == {
            "amount": "***REDACTED***",
            "memo": "***REDACTED***",
            "category_id": "c1",
        }

    def test_log_operation_context_manager(self) -> None:
        """Test LogOperation context manager."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)

        with LogOperation(logger, "test_operation", category_id="c1", amount=100):
            pass

    def test_log_operation_with_domain_error(self) -> None:
        """Domain errors propagate unchanged"""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)

        with pytest.raises(ValidationError):
            with LogOperation(logger, "rejected_operation"):
                raise ValidationError("bad input")

    def test_log_operation_with_exception(self) -> None:
        """Test LogOperation logs errors correctly."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)

        with pytest.raises(ValueError):
            with LogOperation(logger, "failing_operation"):
                raise ValueError("Test error")


class TestMetrics:
    """Test Prometheus metrics collection."""

    def test_track_operation_counts_outcomes(self) -> None:
        @track_operation("metrics_test_op")
        def run(outcome: str) -> str:
            if outcome == "rejected":
                raise ValidationError("no")
            if outcome == "failure":
                raise RuntimeError("boom")
            return outcome

        before = {
            status: sample(
                "envelope_operations_total", operation="metrics_test_op", status=status
            )
            for status in ("success", "rejected", "failure")
        }

        assert run("success") == "success"
        with pytest.raises(ValidationError):
            run("rejected")
        with pytest.raises(RuntimeError):
            run("failure")

        for status in ("success", "rejected", "failure"):
            after = sample("envelope_operations_total", operation="metrics_test_op", status=status)
            assert after == before[status] + 1

        assert (
            sample("envelope_operation_duration_seconds_count", operation="metrics_test_op")
            >= 3
        )

    def test_track_operation_preserves_name(self) -> None:
        @track_operation("named_op")
        def move_between_categories() -> None:
            """Docstring survives"""

        assert move_between_categories.__name__ == "move_between_categories"
        assert move_between_categories.__doc__ == "Docstring survives"


class TestRetry:
    """SQLite lock retries"""

    def test_is_lock_error(self) -> None:
        assert is_lock_error(sqlite3.OperationalError("database is locked"))
        assert is_lock_error(sqlite3.OperationalError("database table is BUSY"))
        assert not is_lock_error(sqlite3.OperationalError("no such table: accounts"))
        assert not is_lock_error(ValueError("locked"))

    def test_retries_lock_errors_then_succeeds(self) -> None:
        calls = {"count": 0}

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def flaky() -> str:
            calls["count"] += 1
            if calls["count"] < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert flaky() == "ok"
        assert calls["count"] == 3

    def test_gives_up_and_reraises(self) -> None:
        calls = {"count": 0}

        @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=2)
        def always_locked() -> None:
            calls["count"] += 1
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            always_locked()
        assert calls["count"] == 2

    def test_other_errors_are_not_retried(self) -> None:
        calls = {"count": 0}

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=2)
        def broken() -> None:
            calls["count"] += 1
            raise sqlite3.OperationalError("no such table")

        with pytest.raises(sqlite3.OperationalError):
            broken()
        assert calls["count"] == 1
