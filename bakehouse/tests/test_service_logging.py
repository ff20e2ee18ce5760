"""Tests for service layer structured logging.

These tests verify that stock and production operations emit structured
log entries with appropriate context information.
"""

import logging
from decimal import Decimal

import pytest

from bakehouse.services import batch_service, production_service
from bakehouse.services.exceptions import InsufficientStock
from bakehouse.services.logging_utils import get_service_logger, log_operation


class TestLoggingUtilities:
    """Tests for logging utility functions."""

    def test_get_service_logger_returns_logger(self):
        """get_service_logger returns a configured Logger instance."""
        logger = get_service_logger("test_module")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "bakehouse.services.test_module"

    def test_get_service_logger_extracts_module_name(self):
        """get_service_logger extracts module name from full path."""
        logger = get_service_logger("bakehouse.services.batch_service")
        assert logger.name == "bakehouse.services.batch_service"

    def test_log_operation_logs_at_info_level(self, caplog):
        """log_operation logs at INFO level by default."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.INFO):
            log_operation(logger, operation="test_op", outcome="success", entity_id=123)

        assert "test_op: success" in caplog.text
        assert caplog.records[0].levelno == logging.INFO

    def test_log_operation_includes_extra_context(self, caplog):
        """log_operation includes extra context in log records."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.INFO):
            log_operation(logger, operation="context_test", outcome="success", batch_id=42)

        record = caplog.records[0]
        assert record.operation == "context_test"
        assert record.outcome == "success"
        assert record.batch_id == 42


class TestServiceLogging:
    """Operations log their outcome with entity ids."""

    def test_reserve_stock_logs_success(self, flour, make_batch, caplog):
        make_batch(flour["id"], 5)

        with caplog.at_level(logging.INFO, logger="bakehouse.services"):
            batch_service.reserve_stock(flour["id"], 2)

        records = [r for r in caplog.records if getattr(r, "operation", None) == "reserve_stock"]
        assert len(records) == 1
        assert records[0].outcome == "success"
        assert records[0].material_id == flour["id"]
        assert records[0].batches_used == 1

    def test_shortage_logged_as_warning(self, flour, make_batch, caplog):
        make_batch(flour["id"], 1)

        with caplog.at_level(logging.INFO, logger="bakehouse.services"):
            with pytest.raises(InsufficientStock):
                batch_service.reserve_stock(flour["id"], 2)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].outcome == "insufficient_stock"
        assert Decimal(warnings[0].required) == Decimal("2")
        assert Decimal(warnings[0].available) == Decimal("1")

    def test_execute_production_logs_run_id(self, bread_bom, flour, sugar, make_batch, caplog):
        make_batch(flour["id"], 10)
        make_batch(sugar["id"], 10)
        run = production_service.plan_production(bread_bom["id"], 2)

        with caplog.at_level(logging.INFO, logger="bakehouse.services"):
            production_service.execute_production(run["id"], 2)

        records = [
            r for r in caplog.records if getattr(r, "operation", None) == "execute_production"
        ]
        assert len(records) == 1
        assert records[0].production_run_id == run["id"]
        assert records[0].batches_used == 2
