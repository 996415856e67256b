"""
Loan Module

Loan data model and lifecycle controller: opening a loan, applying scheduled
or manual payments with interest-first allocation, re-amortizing after an
edit of terms, and early payoff.

State transitions are pure functions over a loan snapshot. ``LoanManager``
wraps them in a load -> compute -> versioned save cycle so the full next
state is known before anything is written.
"""

import logging
import math
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .audit import AuditEventType, AuditTrail
from .calculator import (
    PaymentFormula, accrued_interest, compounding_period_rate, compute_payment,
    count_payments, estimate_payments_made
)
from .config import LedgerConfig, get_config
from .dates import advance_by_period
from .exceptions import InvalidFrequency, InvalidTerms, LoanClosed, LoanNotFound, PaymentTooLarge
from .frequency import Cadence, parse_cadence
from .logging_config import log_action
from .money import HUNDRED, ONE, ZERO, Numeric, format_money, round_money, to_decimal
from .schedule import ScheduleEntry, build_schedule
from .storage import StorageInterface, StorageRecord

logger = logging.getLogger("loan_ledger.loans")


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"   # Accepting payments
    CLOSED = "closed"   # Fully repaid; terminal


@dataclass
class LoanTerms:
    """Terms supplied when opening or editing a loan"""
    principal: Decimal
    interest_rate: Decimal              # Annual nominal rate in percent, e.g. 7.5
    start_date: date
    end_date: date
    payment_frequency: Cadence
    compounding_frequency: Cadence
    number_of_payments: Optional[int] = None  # Derived from the dates when omitted
    title: str = ""
    lender_name: str = ""
    notes: Optional[str] = None

    def __post_init__(self):
        try:
            self.principal = round_money(self.principal)
            self.interest_rate = to_decimal(self.interest_rate)
        except (InvalidOperation, TypeError) as e:
            raise InvalidTerms(f"Invalid numeric term: {e}") from e
        if not self.interest_rate.is_finite():
            raise InvalidTerms("Interest rate must be a finite number")

        try:
            self.payment_frequency = parse_cadence(self.payment_frequency)
            self.compounding_frequency = parse_cadence(self.compounding_frequency)
        except InvalidFrequency as e:
            raise InvalidTerms(str(e)) from e

        if self.principal <= ZERO:
            raise InvalidTerms("Principal must be positive")
        if self.end_date <= self.start_date:
            raise InvalidTerms("End date must be after start date")
        if self.interest_rate < ZERO or self.interest_rate > HUNDRED:
            raise InvalidTerms("Interest rate must be between 0 and 100")
        if self.number_of_payments is not None and self.number_of_payments < 1:
            raise InvalidTerms("Number of payments must be at least 1")

    def resolved_number_of_payments(self) -> int:
        if self.number_of_payments is not None:
            return self.number_of_payments
        return count_payments(self.start_date, self.end_date, self.payment_frequency)


@dataclass
class Loan(StorageRecord):
    """Loan record: terms plus mutable ledger state"""
    owner_id: str
    title: str
    lender_name: str
    principal: Decimal
    start_date: date
    end_date: date
    interest_rate: Decimal
    payment_frequency: Cadence
    compounding_frequency: Cadence
    number_of_payments: int
    payment_amount: Decimal

    # Ledger state
    amount_paid: Decimal
    remaining_balance: Decimal
    last_payment_date: date
    next_due_date: Optional[date]
    status: LoanStatus = LoanStatus.ACTIVE
    notes: Optional[str] = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status == LoanStatus.CLOSED

    def to_dict(self) -> Dict[str, Any]:
        """Convert loan to plain values for storage"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'owner_id': self.owner_id,
            'title': self.title,
            'lender_name': self.lender_name,
            'principal': format_money(self.principal),
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'interest_rate': str(self.interest_rate),
            'payment_frequency': self.payment_frequency.label,
            'compounding_frequency': self.compounding_frequency.label,
            'number_of_payments': self.number_of_payments,
            'payment_amount': format_money(self.payment_amount),
            'amount_paid': format_money(self.amount_paid),
            'remaining_balance': format_money(self.remaining_balance),
            'last_payment_date': self.last_payment_date.isoformat(),
            'next_due_date': self.next_due_date.isoformat() if self.next_due_date else None,
            'status': self.status.value,
            'notes': self.notes,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        """Rebuild a loan from its stored form"""
        next_due = data.get('next_due_date')
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            owner_id=data['owner_id'],
            title=data.get('title', ''),
            lender_name=data.get('lender_name', ''),
            principal=Decimal(data['principal']),
            start_date=date.fromisoformat(data['start_date']),
            end_date=date.fromisoformat(data['end_date']),
            interest_rate=Decimal(data['interest_rate']),
            payment_frequency=parse_cadence(data['payment_frequency']),
            compounding_frequency=parse_cadence(data['compounding_frequency']),
            number_of_payments=int(data['number_of_payments']),
            payment_amount=Decimal(data['payment_amount']),
            amount_paid=Decimal(data['amount_paid']),
            remaining_balance=Decimal(data['remaining_balance']),
            last_payment_date=date.fromisoformat(data['last_payment_date']),
            next_due_date=date.fromisoformat(next_due) if next_due else None,
            status=LoanStatus(data['status']),
            notes=data.get('notes'),
            version=int(data.get('version', 0)),
        )


@dataclass
class PaymentBreakdown:
    """How a single payment was allocated"""
    amount: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    payment_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': format_money(self.amount),
            'interest_paid': format_money(self.interest_paid),
            'principal_paid': format_money(self.principal_paid),
            'payment_date': self.payment_date.isoformat(),
        }


@dataclass
class PaymentProgress:
    """Repayment progress figures; computed, never stored"""
    original_amount: Decimal
    total_with_interest: Decimal
    amount_paid: Decimal
    amount_remaining: Decimal
    remaining_balance: Decimal
    payments_made: int
    payments_remaining: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'original_amount': format_money(self.original_amount),
            'total_with_interest': format_money(self.total_with_interest),
            'amount_paid': format_money(self.amount_paid),
            'amount_remaining': format_money(self.amount_remaining),
            'remaining_balance': format_money(self.remaining_balance),
            'payments_made': self.payments_made,
            'payments_remaining': self.payments_remaining,
        }


@dataclass
class PaymentResult:
    loan: Loan
    payment: PaymentBreakdown
    progress: PaymentProgress

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loan': self.loan.to_dict(),
            'payment_details': self.payment.to_dict(),
            'payment_progress': self.progress.to_dict(),
        }


@dataclass
class PayoffBreakdown:
    """Settlement figures for an early payoff"""
    final_payment: Decimal
    interest_paid: Decimal
    principal_paid: Decimal
    payoff_date: date
    total_paid: Decimal
    estimated_savings: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'final_payment': format_money(self.final_payment),
            'interest_paid': format_money(self.interest_paid),
            'principal_paid': format_money(self.principal_paid),
            'payoff_date': self.payoff_date.isoformat(),
            'total_paid': format_money(self.total_paid),
            'estimated_savings': format_money(self.estimated_savings),
        }


@dataclass
class PayoffResult:
    loan: Loan
    details: PayoffBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loan': self.loan.to_dict(),
            'payoff_details': self.details.to_dict(),
        }


@dataclass
class LoanPage:
    """One page of an owner's loans"""
    loans: List[Loan]
    total: int
    page: int
    pages: int


def _close(loan: Loan) -> Loan:
    return replace(loan, remaining_balance=ZERO, status=LoanStatus.CLOSED, next_due_date=None)


def open_loan(
    owner_id: str,
    terms: LoanTerms,
    now: datetime,
    formula: PaymentFormula = PaymentFormula.EFFECTIVE_RATE
) -> Loan:
    """Build a new active loan from validated terms"""
    number_of_payments = terms.resolved_number_of_payments()
    payment_amount = compute_payment(
        terms.principal,
        terms.interest_rate,
        terms.compounding_frequency,
        terms.payment_frequency,
        number_of_payments,
        formula
    )

    return Loan(
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        owner_id=owner_id,
        title=terms.title,
        lender_name=terms.lender_name,
        principal=terms.principal,
        start_date=terms.start_date,
        end_date=terms.end_date,
        interest_rate=terms.interest_rate,
        payment_frequency=terms.payment_frequency,
        compounding_frequency=terms.compounding_frequency,
        number_of_payments=number_of_payments,
        payment_amount=payment_amount,
        amount_paid=round_money(ZERO),
        remaining_balance=terms.principal,
        last_payment_date=terms.start_date,
        next_due_date=advance_by_period(terms.start_date, terms.payment_frequency.months_per_period),
        status=LoanStatus.ACTIVE,
        notes=terms.notes,
    )


def settle_payment(
    loan: Loan,
    amount: Optional[Numeric],
    payment_date: date,
    tolerance: Decimal = Decimal('1.10'),
    closure_threshold: Decimal = Decimal('0.01')
) -> Tuple[Loan, PaymentBreakdown]:
    """
    Apply a payment to a loan snapshot

    Interest accrued since the last payment is paid first; the rest reduces
    principal. Payments above ``tolerance`` times the balance due are
    rejected with the balance due as the suggested amount.
    """
    if loan.is_closed:
        raise LoanClosed(loan.id)

    if amount is None:
        amount = loan.payment_amount
    else:
        try:
            amount = to_decimal(amount)
        except (InvalidOperation, TypeError) as e:
            raise InvalidTerms(f"Invalid payment amount: {e}") from e
        if not amount.is_finite():
            raise InvalidTerms("Payment amount must be a finite number")
        amount = round_money(amount)
    if amount <= ZERO:
        raise InvalidTerms("Payment amount must be positive")
    if payment_date < loan.start_date:
        raise InvalidTerms("Payment date precedes the loan start date")

    interest = accrued_interest(
        loan.remaining_balance,
        loan.interest_rate,
        loan.last_payment_date,
        payment_date,
        loan.compounding_frequency
    )
    balance_due = loan.remaining_balance + interest

    if amount > balance_due * tolerance:
        raise PaymentTooLarge(amount, round_money(balance_due))

    interest_paid = min(interest, amount)
    principal_paid = amount - interest_paid

    updated = replace(
        loan,
        amount_paid=round_money(loan.amount_paid + amount),
        remaining_balance=round_money(max(ZERO, loan.remaining_balance - principal_paid)),
        last_payment_date=max(loan.last_payment_date, payment_date),
        next_due_date=advance_by_period(payment_date, loan.payment_frequency.months_per_period),
    )
    if updated.remaining_balance <= closure_threshold:
        updated = _close(updated)

    breakdown = PaymentBreakdown(
        amount=amount,
        interest_paid=round_money(interest_paid),
        principal_paid=round_money(principal_paid),
        payment_date=payment_date
    )
    return updated, breakdown


def payment_progress(loan: Loan) -> PaymentProgress:
    """Progress figures derived from the loan's ledger state"""
    total_with_interest = loan.payment_amount * loan.number_of_payments
    payments_made = estimate_payments_made(loan.amount_paid, loan.payment_amount)

    return PaymentProgress(
        original_amount=loan.principal,
        total_with_interest=round_money(total_with_interest),
        amount_paid=loan.amount_paid,
        amount_remaining=round_money(max(ZERO, total_with_interest - loan.amount_paid)),
        remaining_balance=loan.remaining_balance,
        payments_made=payments_made,
        payments_remaining=max(0, loan.number_of_payments - payments_made)
    )


def rebase_loan(
    loan: Loan,
    terms: LoanTerms,
    as_of: date,
    formula: PaymentFormula = PaymentFormula.EFFECTIVE_RATE,
    closure_threshold: Decimal = Decimal('0.01')
) -> Loan:
    """
    Re-amortize a loan under new terms

    Repayment progress carries over as a fraction of principal: the share of
    the old principal already repaid (net of interest accrued on the old
    balance) is applied to the new principal. An unchanged principal keeps
    the remaining balance as it is.
    """
    if loan.is_closed:
        raise LoanClosed(loan.id)

    old_principal = loan.principal
    new_principal = terms.principal

    if old_principal > ZERO and new_principal != old_principal:
        interest = accrued_interest(
            loan.remaining_balance,
            loan.interest_rate,
            loan.last_payment_date,
            as_of,
            loan.compounding_frequency
        )
        principal_already_paid = old_principal - (loan.remaining_balance - interest)
        percentage_paid = principal_already_paid / old_principal
        new_remaining = new_principal * (ONE - percentage_paid)
    else:
        new_remaining = loan.remaining_balance

    new_remaining = min(max(ZERO, new_remaining), new_principal)

    number_of_payments = terms.resolved_number_of_payments()
    payment_amount = compute_payment(
        new_principal,
        terms.interest_rate,
        terms.compounding_frequency,
        terms.payment_frequency,
        number_of_payments,
        formula
    )

    # The reset date may not move backwards or precede the new start date
    anchor = max(as_of, terms.start_date, loan.last_payment_date)

    updated = replace(
        loan,
        title=terms.title,
        lender_name=terms.lender_name,
        notes=terms.notes,
        principal=new_principal,
        start_date=terms.start_date,
        end_date=terms.end_date,
        interest_rate=terms.interest_rate,
        payment_frequency=terms.payment_frequency,
        compounding_frequency=terms.compounding_frequency,
        number_of_payments=number_of_payments,
        payment_amount=payment_amount,
        remaining_balance=round_money(new_remaining),
        amount_paid=round_money(new_principal - new_remaining),
        last_payment_date=anchor,
        next_due_date=advance_by_period(anchor, terms.payment_frequency.months_per_period),
    )
    if updated.remaining_balance <= closure_threshold:
        updated = _close(updated)
    return updated


def settle_payoff(loan: Loan, as_of: date) -> Tuple[Loan, PayoffBreakdown]:
    """Close a loan by paying the balance plus interest accrued to ``as_of``"""
    if loan.is_closed:
        raise LoanClosed(loan.id)

    interest = accrued_interest(
        loan.remaining_balance,
        loan.interest_rate,
        loan.last_payment_date,
        as_of,
        loan.compounding_frequency
    )
    final_payment = loan.remaining_balance + interest
    amount_paid = round_money(loan.amount_paid + final_payment)

    updated = replace(
        loan,
        amount_paid=amount_paid,
        last_payment_date=max(loan.last_payment_date, as_of),
    )
    updated = _close(updated)

    details = PayoffBreakdown(
        final_payment=round_money(final_payment),
        interest_paid=interest,
        principal_paid=loan.remaining_balance,
        payoff_date=as_of,
        total_paid=amount_paid,
        estimated_savings=estimate_savings(loan, amount_paid)
    )
    return updated, details


def estimate_savings(loan: Loan, amount_paid: Decimal) -> Decimal:
    """
    Interest avoided versus running the full original term

    Compounds the original principal over the whole term in compounding
    periods and subtracts what was actually paid. Never negative.
    """
    rate = compounding_period_rate(loan.interest_rate, loan.compounding_frequency)
    total_periods = (
        Decimal(loan.number_of_payments)
        * Decimal(loan.compounding_frequency.periods_per_year)
        / Decimal(loan.payment_frequency.periods_per_year)
    )
    full_term_cost = loan.principal * (ONE + rate) ** total_periods
    return round_money(max(ZERO, full_term_cost - amount_paid))


class LoanManager:
    """
    Manages the loan lifecycle from opening through closure

    Every mutating operation loads a snapshot, computes the complete next
    state, then saves it with a version check together with its audit event.
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[LedgerConfig] = None,
        clock: Callable[[], date] = date.today
    ):
        self.storage = storage
        self.config = config or get_config()
        self.audit_trail = audit_trail
        if self.audit_trail is None and self.config.enable_audit_logging:
            self.audit_trail = AuditTrail(storage)
        self.clock = clock

        self.loans_table = "loans"
        self.formula = PaymentFormula(self.config.payment_formula)
        self.tolerance = Decimal(self.config.overpayment_tolerance)
        self.closure_threshold = Decimal(self.config.closure_threshold)

    def create_loan(self, owner_id: str, terms: LoanTerms) -> Loan:
        """
        Open a new loan

        Args:
            owner_id: Owning user
            terms: Validated loan terms

        Returns:
            Saved Loan in ACTIVE state
        """
        loan = open_loan(owner_id, terms, datetime.now(timezone.utc), self.formula)
        loan = self._commit(
            None, loan, AuditEventType.LOAN_CREATED,
            {
                "principal": loan.principal,
                "interest_rate": loan.interest_rate,
                "payment_frequency": loan.payment_frequency.label,
                "compounding_frequency": loan.compounding_frequency.label,
                "number_of_payments": loan.number_of_payments,
                "payment_amount": loan.payment_amount,
            }
        )

        log_action(
            logger, "info", f"Loan opened with payment {format_money(loan.payment_amount)}",
            user_id=owner_id, action="create_loan", resource=loan.id
        )
        return loan

    def apply_payment(
        self,
        loan_id: str,
        owner_id: str,
        amount: Optional[Numeric] = None,
        payment_date: Optional[date] = None
    ) -> PaymentResult:
        """
        Record a scheduled or manual payment

        Args:
            loan_id: Loan ID
            owner_id: Owning user
            amount: Payment amount (defaults to the periodic payment)
            payment_date: Date of payment (defaults to today)

        Returns:
            PaymentResult with updated loan, allocation and progress
        """
        if payment_date is None:
            payment_date = self.clock()

        loan = self.require_loan(loan_id, owner_id)
        try:
            updated, breakdown = settle_payment(
                loan, amount, payment_date, self.tolerance, self.closure_threshold
            )
        except PaymentTooLarge as e:
            log_action(
                logger, "warning", f"Payment rejected: {e}",
                user_id=owner_id, action="apply_payment", resource=loan_id,
                extra={"suggested_payment": format_money(e.suggested_payment)}
            )
            raise

        updated = self._commit(
            loan, updated, AuditEventType.LOAN_PAYMENT_APPLIED,
            {
                "amount": breakdown.amount,
                "interest_paid": breakdown.interest_paid,
                "principal_paid": breakdown.principal_paid,
                "payment_date": breakdown.payment_date,
                "remaining_balance": updated.remaining_balance,
            }
        )

        log_action(
            logger, "info", f"Payment of {format_money(breakdown.amount)} applied",
            user_id=owner_id, action="apply_payment", resource=loan_id,
            extra={"remaining_balance": format_money(updated.remaining_balance),
                   "status": updated.status.value}
        )
        return PaymentResult(loan=updated, payment=breakdown, progress=payment_progress(updated))

    def revise_loan(
        self,
        loan_id: str,
        owner_id: str,
        terms: LoanTerms,
        as_of: Optional[date] = None
    ) -> Loan:
        """
        Edit the terms of an active loan and re-amortize it

        Args:
            loan_id: Loan ID
            owner_id: Owning user
            terms: Replacement terms
            as_of: Effective date of the edit (defaults to today)

        Returns:
            Updated Loan
        """
        if as_of is None:
            as_of = self.clock()

        loan = self.require_loan(loan_id, owner_id)
        updated = rebase_loan(loan, terms, as_of, self.formula, self.closure_threshold)
        updated = self._commit(
            loan, updated, AuditEventType.LOAN_REVISED,
            {
                "old_principal": loan.principal,
                "new_principal": updated.principal,
                "old_remaining_balance": loan.remaining_balance,
                "new_remaining_balance": updated.remaining_balance,
                "payment_amount": updated.payment_amount,
                "number_of_payments": updated.number_of_payments,
            }
        )

        log_action(
            logger, "info", "Loan terms revised",
            user_id=owner_id, action="revise_loan", resource=loan_id,
            extra={"payment_amount": format_money(updated.payment_amount)}
        )
        return updated

    def payoff(self, loan_id: str, owner_id: str, as_of: Optional[date] = None) -> PayoffResult:
        """
        Settle a loan early

        Args:
            loan_id: Loan ID
            owner_id: Owning user
            as_of: Payoff date (defaults to today)

        Returns:
            PayoffResult with the closed loan and settlement figures
        """
        if as_of is None:
            as_of = self.clock()

        loan = self.require_loan(loan_id, owner_id)
        updated, details = settle_payoff(loan, as_of)
        updated = self._commit(
            loan, updated, AuditEventType.LOAN_PAID_OFF,
            {
                "final_payment": details.final_payment,
                "interest_paid": details.interest_paid,
                "payoff_date": details.payoff_date,
                "estimated_savings": details.estimated_savings,
            }
        )

        log_action(
            logger, "info", f"Loan paid off with {format_money(details.final_payment)}",
            user_id=owner_id, action="payoff", resource=loan_id
        )
        return PayoffResult(loan=updated, details=details)

    def get_loan(self, loan_id: str, owner_id: Optional[str] = None) -> Optional[Loan]:
        """Get loan by ID, optionally restricted to an owner"""
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            return None
        if owner_id is not None and data.get('owner_id') != owner_id:
            return None
        return Loan.from_dict(data)

    def require_loan(self, loan_id: str, owner_id: str) -> Loan:
        """Get an owner's loan or raise LoanNotFound"""
        loan = self.get_loan(loan_id, owner_id)
        if loan is None:
            raise LoanNotFound(loan_id)
        return loan

    def list_loans(
        self,
        owner_id: str,
        status: Optional[LoanStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> LoanPage:
        """An owner's loans, newest start date first"""
        if page < 1 or limit < 1:
            raise ValueError("Page and limit must be positive")

        filters: Dict[str, Any] = {"owner_id": owner_id}
        if status is not None:
            filters["status"] = status.value

        records = self.storage.find(self.loans_table, filters)
        records.sort(key=lambda x: x['start_date'], reverse=True)

        offset = (page - 1) * limit
        loans = [Loan.from_dict(data) for data in records[offset:offset + limit]]
        return LoanPage(
            loans=loans,
            total=len(records),
            page=page,
            pages=math.ceil(len(records) / limit)
        )

    def list_active_loans(self) -> List[Loan]:
        """Snapshot of every active loan"""
        records = self.storage.find(self.loans_table, {"status": LoanStatus.ACTIVE.value})
        return [Loan.from_dict(data) for data in records]

    def get_schedule(self, loan_id: str, owner_id: str) -> List[ScheduleEntry]:
        """Projected remaining payments of a loan"""
        return build_schedule(self.require_loan(loan_id, owner_id))

    def _commit(
        self,
        previous: Optional[Loan],
        updated: Loan,
        event_type: AuditEventType,
        metadata: Dict[str, Any]
    ) -> Loan:
        """Save the next loan state and its audit events atomically"""
        expected_version = previous.version if previous is not None else None
        if previous is not None:
            updated = replace(
                updated,
                version=previous.version + 1,
                updated_at=datetime.now(timezone.utc)
            )
        else:
            updated = replace(updated, version=1)

        with self.storage.atomic():
            self.storage.save_versioned(
                self.loans_table, updated.id, updated.to_dict(), expected_version
            )
            if self.audit_trail is not None:
                self.audit_trail.log_event(
                    event_type=event_type,
                    entity_type="loan",
                    entity_id=updated.id,
                    metadata=metadata,
                    user_id=updated.owner_id
                )
                closed_now = updated.is_closed and (previous is None or previous.is_active)
                if closed_now:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.LOAN_CLOSED,
                        entity_type="loan",
                        entity_id=updated.id,
                        metadata={"amount_paid": updated.amount_paid},
                        user_id=updated.owner_id
                    )

        if updated.is_closed and (previous is None or previous.is_active):
            log_action(
                logger, "info", "Loan closed",
                user_id=updated.owner_id, action="close_loan", resource=updated.id
            )
        return updated
