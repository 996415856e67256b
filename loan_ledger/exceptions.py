"""
Error hierarchy for the loan ledger.

All errors derive from ValueError so callers that only distinguish
"bad input" from "system failure" keep working.
"""

from decimal import Decimal
from typing import Optional


class LoanLedgerError(ValueError):
    """Base exception for all loan ledger errors"""


class InvalidTerms(LoanLedgerError):
    """Raised when loan terms or payment inputs are invalid"""


class InvalidFrequency(LoanLedgerError):
    """Raised for an unrecognized cadence name (a programming error)"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid frequency: {value!r}")


class LoanNotFound(LoanLedgerError):
    """Raised when a loan does not exist or is not owned by the caller"""

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} not found or not authorized")


class LoanClosed(LoanLedgerError):
    """Raised when a payment, payoff or edit targets a closed loan"""

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already closed")


class PaymentTooLarge(LoanLedgerError):
    """Raised when a payment exceeds the overpayment tolerance"""

    def __init__(self, requested: Decimal, suggested_payment: Decimal):
        self.requested = requested
        self.suggested_payment = suggested_payment
        super().__init__(
            f"Payment {requested} exceeds the balance due; "
            f"suggested payment is {suggested_payment}"
        )


class ConcurrentModification(LoanLedgerError):
    """Raised when a versioned save finds a newer record in storage"""

    def __init__(self, record_id: str, expected: Optional[int], actual: Optional[int]):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record {record_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
