"""
Tests for the due-date reminder scan
"""

from datetime import date
from decimal import Decimal

from loan_ledger.config import LedgerConfig
from loan_ledger.loans import LoanManager, LoanTerms
from loan_ledger.reminders import DueLoanScanner, DueReminder
from loan_ledger.storage import InMemoryStorage


def make_terms(start_date: date, title: str = "Car loan") -> LoanTerms:
    return LoanTerms(
        principal=Decimal('1200.00'),
        interest_rate=Decimal('0'),
        start_date=start_date,
        end_date=date(2026, 1, 1),
        payment_frequency="monthly",
        compounding_frequency="monthly",
        title=title,
    )


class TestDueReminder:

    def test_message_and_key(self):
        reminder = DueReminder(
            loan_id="loan-1",
            owner_id="user-1",
            title="Car loan",
            payment_amount=Decimal('100'),
            due_date=date(2025, 2, 1),
            overdue=False
        )

        assert reminder.dedupe_key == "loan-1:2025-02-01"
        assert reminder.message == 'Reminder: Your "Car loan" payment of $100.00 is due on 2025-02-01'
        assert reminder.to_dict()['overdue'] is False


class TestDueLoanScanner:
    """Test selection of loans approaching their due date"""

    def setup_method(self):
        """Set up test fixtures"""
        self.today = date(2025, 1, 30)
        self.manager = LoanManager(
            InMemoryStorage(),
            config=LedgerConfig(enable_audit_logging=False, reminder_window_days=3),
            clock=lambda: self.today
        )
        self.scanner = DueLoanScanner(self.manager)

        # Due 2025-02-01, within the window
        self.soon = self.manager.create_loan("user-1", make_terms(date(2025, 1, 1), "Soon"))
        # Due 2025-01-15, already overdue
        self.late = self.manager.create_loan("user-2", make_terms(date(2024, 12, 15), "Late"))
        # Due 2025-02-20, outside the window
        self.later = self.manager.create_loan("user-1", make_terms(date(2025, 1, 20), "Later"))

    def test_scan_selects_due_and_overdue(self):
        reminders = self.scanner.scan()

        assert [r.loan_id for r in reminders] == [self.late.id, self.soon.id]
        assert reminders[0].overdue is True
        assert reminders[1].overdue is False
        assert reminders[1].payment_amount == Decimal('100.00')

    def test_window_override(self):
        reminders = self.scanner.scan(as_of=date(2025, 1, 30), window_days=30)
        assert len(reminders) == 3

    def test_due_on_scan_date_is_not_overdue(self):
        reminders = self.scanner.scan(as_of=date(2025, 2, 1), window_days=0)

        soon = [r for r in reminders if r.loan_id == self.soon.id][0]
        assert soon.overdue is False

    def test_already_notified_is_skipped(self):
        key = f"{self.soon.id}:2025-02-01"
        reminders = self.scanner.scan(already_notified=[key])

        assert [r.loan_id for r in reminders] == [self.late.id]

    def test_closed_loans_are_ignored(self):
        self.manager.payoff(self.late.id, "user-2")

        reminders = self.scanner.scan()
        assert [r.loan_id for r in reminders] == [self.soon.id]

    def test_payment_moves_due_date(self):
        self.manager.apply_payment(self.soon.id, "user-1", payment_date=date(2025, 1, 30))

        reminders = self.scanner.scan()
        assert self.soon.id not in [r.loan_id for r in reminders]

    def test_scan_does_not_modify_loans(self):
        before = self.manager.get_loan(self.soon.id)
        self.scanner.scan()
        assert self.manager.get_loan(self.soon.id) == before
