"""
Tests for the loan ledger error hierarchy
"""

from decimal import Decimal

import pytest

from loan_ledger.exceptions import (
    ConcurrentModification, InvalidFrequency, InvalidTerms, LoanClosed,
    LoanLedgerError, LoanNotFound, PaymentTooLarge
)


class TestErrorHierarchy:

    @pytest.mark.parametrize("error", [
        InvalidTerms("bad"),
        InvalidFrequency("weekly"),
        LoanNotFound("L1"),
        LoanClosed("L1"),
        PaymentTooLarge(Decimal('500.00'), Decimal('110.00')),
        ConcurrentModification("L1", 1, 2),
    ])
    def test_all_errors_are_ledger_errors(self, error):
        assert isinstance(error, LoanLedgerError)
        assert isinstance(error, ValueError)

    def test_payment_too_large_carries_suggestion(self):
        error = PaymentTooLarge(Decimal('500.00'), Decimal('110.00'))

        assert error.requested == Decimal('500.00')
        assert error.suggested_payment == Decimal('110.00')
        assert "110.00" in str(error)

    def test_invalid_frequency_keeps_value(self):
        error = InvalidFrequency("weekly")
        assert error.value == "weekly"
        assert str(error) == "Invalid frequency: 'weekly'"

    def test_not_found_message(self):
        assert str(LoanNotFound("L9")) == "Loan L9 not found or not authorized"

    def test_concurrent_modification_versions(self):
        error = ConcurrentModification("L1", 3, 4)
        assert (error.record_id, error.expected, error.actual) == ("L1", 3, 4)
