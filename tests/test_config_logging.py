"""
Tests for configuration loading and structured logging
"""

import io
import json
import logging
from datetime import date
from decimal import Decimal

import pytest

from loan_ledger import config as config_module
from loan_ledger.config import LedgerConfig, get_config, reload_config
from loan_ledger.loans import LoanManager, LoanTerms
from loan_ledger.logging_config import JSONFormatter, get_logger, log_action, setup_logging
from loan_ledger.storage import InMemoryStorage


class TestLedgerConfig:
    """Test environment-driven configuration"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOAN_LEDGER_PAYMENT_FORMULA", raising=False)
        cfg = LedgerConfig(_env_file=None)

        assert cfg.payment_formula == "effective_rate"
        assert cfg.overpayment_tolerance == "1.10"
        assert cfg.closure_threshold == "0.01"
        assert cfg.reminder_window_days == 3
        assert cfg.enable_audit_logging is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOAN_LEDGER_PAYMENT_FORMULA", "legacy")
        monkeypatch.setenv("LOAN_LEDGER_REMINDER_WINDOW_DAYS", "7")
        monkeypatch.setenv("LOAN_LEDGER_ENABLE_AUDIT_LOGGING", "false")

        cfg = LedgerConfig(_env_file=None)

        assert cfg.payment_formula == "legacy"
        assert cfg.reminder_window_days == 7
        assert cfg.enable_audit_logging is False

    def test_reload_replaces_global(self, monkeypatch):
        original = get_config()
        monkeypatch.setattr(config_module, "config", original)
        monkeypatch.setenv("LOAN_LEDGER_OVERPAYMENT_TOLERANCE", "1.25")

        reloaded = reload_config()

        assert reloaded is get_config()
        assert reloaded.overpayment_tolerance == "1.25"

    def test_manager_uses_configured_rules(self):
        cfg = LedgerConfig(overpayment_tolerance="1.00", enable_audit_logging=False)
        manager = LoanManager(InMemoryStorage(), config=cfg)

        assert manager.tolerance == Decimal('1.00')
        assert manager.audit_trail is None

    def test_unknown_formula_rejected(self):
        with pytest.raises(ValueError):
            LoanManager(InMemoryStorage(), config=LedgerConfig(payment_formula="simple"))


class TestStructuredLogging:
    """Test JSON log output"""

    def setup_method(self):
        """Capture log output of a dedicated logger"""
        self.stream = io.StringIO()
        self.logger = logging.getLogger("loan_ledger.test_capture")
        self.logger.handlers = []
        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

    def read_entries(self):
        return [json.loads(line) for line in self.stream.getvalue().splitlines()]

    def test_log_action_fields(self):
        log_action(
            self.logger, "info", "Payment applied",
            user_id="user-1", action="apply_payment", resource="loan-1",
            extra={"remaining_balance": "100.00"}
        )

        entry = self.read_entries()[0]
        assert entry["level"] == "INFO"
        assert entry["logger"] == "loan_ledger.test_capture"
        assert entry["message"] == "Payment applied"
        assert entry["user_id"] == "user-1"
        assert entry["action"] == "apply_payment"
        assert entry["resource"] == "loan-1"
        assert entry["extra"] == {"remaining_balance": "100.00"}
        assert "timestamp" in entry

    def test_absent_fields_are_dropped(self):
        log_action(self.logger, "warning", "Plain message")

        entry = self.read_entries()[0]
        assert entry["level"] == "WARNING"
        assert "user_id" not in entry
        assert "extra" not in entry

    def test_exception_is_included(self):
        try:
            raise RuntimeError("storage unavailable")
        except RuntimeError:
            self.logger.exception("Save failed")

        entry = self.read_entries()[0]
        assert "RuntimeError: storage unavailable" in entry["exception"]

    def test_setup_logging_text_format(self, tmp_path):
        log_file = tmp_path / "ledger.log"
        logger = setup_logging("DEBUG", "loan_ledger.test_text", log_format="text", log_file=str(log_file))

        logger.debug("hello")
        for handler in logger.handlers:
            handler.flush()

        assert "DEBUG loan_ledger.test_text: hello" in log_file.read_text()
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        for handler in logger.handlers:
            handler.close()

    def test_setup_logging_replaces_handlers(self):
        setup_logging("INFO", "loan_ledger.test_json")
        logger = setup_logging("INFO", "loan_ledger.test_json")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert get_logger("loan_ledger.test_json") is logger

    def test_manager_logs_actions(self):
        """Lifecycle operations emit structured action records"""
        manager_logger = logging.getLogger("loan_ledger.loans")
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
        manager_logger.addHandler(handler)
        previous_level = manager_logger.level
        manager_logger.setLevel(logging.INFO)
        try:
            manager = LoanManager(InMemoryStorage(), config=LedgerConfig(enable_audit_logging=False))
            loan = manager.create_loan("user-1", LoanTerms(
                principal=Decimal('1200'),
                interest_rate=Decimal('0'),
                start_date=date(2025, 1, 1),
                end_date=date(2026, 1, 1),
                payment_frequency="monthly",
                compounding_frequency="monthly"
            ))
        finally:
            manager_logger.removeHandler(handler)
            manager_logger.setLevel(previous_level)

        entries = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert entries[0]["action"] == "create_loan"
        assert entries[0]["resource"] == loan.id
        assert entries[0]["user_id"] == "user-1"
