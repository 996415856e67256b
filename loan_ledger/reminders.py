"""
Due-date scan for loan payment reminders

Run periodically by an external scheduler. Reads a snapshot of active loans
and reports those whose next payment falls due within the reminder window
(or is already overdue). Creating and delivering the notifications is up to
the caller; the scan itself never writes.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .loans import LoanManager
from .money import format_money

logger = logging.getLogger("loan_ledger.reminders")


@dataclass
class DueReminder:
    """A loan payment that needs a reminder"""
    loan_id: str
    owner_id: str
    title: str
    payment_amount: Decimal
    due_date: date
    overdue: bool

    @property
    def dedupe_key(self) -> str:
        """Stable key identifying this reminder for one due date"""
        return f"{self.loan_id}:{self.due_date.isoformat()}"

    @property
    def message(self) -> str:
        return (
            f'Reminder: Your "{self.title}" payment of '
            f'${format_money(self.payment_amount)} is due on {self.due_date.isoformat()}'
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loan_id': self.loan_id,
            'owner_id': self.owner_id,
            'message': self.message,
            'due_date': self.due_date.isoformat(),
            'overdue': self.overdue,
            'dedupe_key': self.dedupe_key,
        }


class DueLoanScanner:
    """Finds active loans with a payment approaching or past due"""

    def __init__(self, loan_manager: LoanManager):
        self.loan_manager = loan_manager

    def scan(
        self,
        as_of: Optional[date] = None,
        window_days: Optional[int] = None,
        already_notified: Iterable[str] = ()
    ) -> List[DueReminder]:
        """
        Collect reminders for loans due on or before ``as_of + window_days``

        Args:
            as_of: Scan date (defaults to the manager's clock)
            window_days: Look-ahead window (defaults to configuration)
            already_notified: Dedupe keys of reminders the caller already sent

        Returns:
            Reminders ordered by due date
        """
        if as_of is None:
            as_of = self.loan_manager.clock()
        if window_days is None:
            window_days = self.loan_manager.config.reminder_window_days

        horizon = as_of + timedelta(days=window_days)
        skip = set(already_notified)

        reminders = []
        for loan in self.loan_manager.list_active_loans():
            if loan.next_due_date is None or loan.next_due_date > horizon:
                continue
            reminder = DueReminder(
                loan_id=loan.id,
                owner_id=loan.owner_id,
                title=loan.title,
                payment_amount=loan.payment_amount,
                due_date=loan.next_due_date,
                overdue=loan.next_due_date < as_of
            )
            if reminder.dedupe_key in skip:
                continue
            reminders.append(reminder)

        reminders.sort(key=lambda r: (r.due_date, r.loan_id))
        logger.info(
            "Due scan found %d loan(s) due by %s", len(reminders), horizon.isoformat()
        )
        return reminders
