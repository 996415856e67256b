"""
Amortization schedule projection

Projects the remaining repayment plan of an active loan from its current
balance and stored periodic payment. The projection is computed on demand
and never stored; it is re-derived after every payment or edit.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List

from .calculator import estimate_payments_made, payment_period_rate
from .dates import advance_by_period
from .money import ZERO, format_money, round_money

if TYPE_CHECKING:
    from .loans import Loan


@dataclass
class ScheduleEntry:
    """Single projected payment"""
    payment_number: int
    due_date: date
    payment: Decimal
    interest: Decimal
    principal: Decimal
    remaining_balance: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'payment_number': self.payment_number,
            'due_date': self.due_date.isoformat(),
            'payment': format_money(self.payment),
            'interest': format_money(self.interest),
            'principal': format_money(self.principal),
            'remaining_balance': format_money(self.remaining_balance),
        }


def build_schedule(loan: "Loan") -> List[ScheduleEntry]:
    """
    Project the remaining payments of a loan

    Interest per period uses the discrete payment-period rate, the same rate
    the periodic payment was derived from. The last projected payment
    settles whatever balance is left, so the schedule always ends at zero.
    """
    if loan.is_closed or loan.next_due_date is None:
        return []

    rate = payment_period_rate(loan.interest_rate, loan.compounding_frequency, loan.payment_frequency)
    months = loan.payment_frequency.months_per_period
    payments_left = max(1, loan.number_of_payments - estimate_payments_made(loan.amount_paid, loan.payment_amount))

    schedule = []
    balance = loan.remaining_balance
    due_date = loan.next_due_date

    for payment_number in range(1, payments_left + 1):
        interest = balance * rate
        payment = loan.payment_amount
        principal = payment - interest

        if payment_number == payments_left or principal >= balance:
            principal = balance
            payment = principal + interest

        balance = balance - principal

        schedule.append(ScheduleEntry(
            payment_number=payment_number,
            due_date=due_date,
            payment=round_money(payment),
            interest=round_money(interest),
            principal=round_money(principal),
            remaining_balance=round_money(balance)
        ))

        if balance <= ZERO:
            break
        due_date = advance_by_period(due_date, months)

    return schedule
