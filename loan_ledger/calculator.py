"""
Payment and Accrual Calculators

Pure functions deriving the fixed periodic payment of a loan and the
interest accrued on a balance between two calendar dates.

The two use different interest models. The payment calculator converts the
nominal rate to a discrete per-payment-period rate; the accrual calculator
compounds over fractional periods of elapsed actual/365 time. Both are kept
as separate functions and are not interchangeable.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Union

from .dates import whole_months_between
from .exceptions import InvalidTerms
from .frequency import Cadence, parse_cadence
from .money import HUNDRED, ONE, ZERO, Numeric, round_money, to_decimal

DAYS_PER_YEAR = Decimal('365')


class PaymentFormula(Enum):
    """Variants of the periodic payment calculation"""
    EFFECTIVE_RATE = "effective_rate"  # Convert via the effective annual rate
    LEGACY = "legacy"                  # Stretch the payment count to compounding periods


def compounding_period_rate(annual_rate_percent: Numeric, compounding: Union[Cadence, str]) -> Decimal:
    """Nominal annual percent converted to a per-compounding-period rate"""
    cadence = parse_cadence(compounding)
    return to_decimal(annual_rate_percent) / HUNDRED / Decimal(cadence.periods_per_year)


def payment_period_rate(
    annual_rate_percent: Numeric,
    compounding: Union[Cadence, str],
    payment: Union[Cadence, str]
) -> Decimal:
    """
    Interest rate per payment period

    The per-compounding-period rate is compounded up to an effective annual
    rate and then taken back down to the payment cadence:

        ea = (1 + rc)^m - 1
        rp = (1 + ea)^(1/p) - 1
    """
    compounding = parse_cadence(compounding)
    payment = parse_cadence(payment)

    rc = compounding_period_rate(annual_rate_percent, compounding)
    effective_annual = (ONE + rc) ** compounding.periods_per_year - ONE
    exponent = ONE / Decimal(payment.periods_per_year)
    return (ONE + effective_annual) ** exponent - ONE


def compute_payment(
    principal: Numeric,
    annual_rate_percent: Numeric,
    compounding: Union[Cadence, str],
    payment: Union[Cadence, str],
    number_of_payments: int,
    formula: PaymentFormula = PaymentFormula.EFFECTIVE_RATE
) -> Decimal:
    """
    Fixed periodic payment that amortizes a loan

    Standard annuity formula: P * [r(1+r)^n] / [(1+r)^n - 1], where r is the
    payment-period rate. A zero rate reduces to P / n.

    Args:
        principal: Amount borrowed
        annual_rate_percent: Nominal annual rate in percent (12 for 12%)
        compounding: Compounding cadence
        payment: Payment cadence
        number_of_payments: Count of scheduled payments
        formula: Which period-conversion variant to apply

    Returns:
        Payment rounded to cents
    """
    if number_of_payments < 1:
        raise InvalidTerms("Number of payments must be at least 1")

    principal = to_decimal(principal)
    rate = to_decimal(annual_rate_percent)
    compounding = parse_cadence(compounding)
    payment = parse_cadence(payment)

    if rate == ZERO:
        return round_money(principal / Decimal(number_of_payments))

    if formula == PaymentFormula.LEGACY:
        return round_money(_legacy_payment(principal, rate, compounding, payment, number_of_payments))

    rp = payment_period_rate(rate, compounding, payment)
    factor = (ONE + rp) ** number_of_payments
    return round_money(principal * (rp * factor) / (factor - ONE))


def _legacy_payment(
    principal: Decimal,
    rate: Decimal,
    compounding: Cadence,
    payment: Cadence,
    number_of_payments: int
) -> Decimal:
    """Raw compounding-period rate over a stretched number of periods"""
    rc = compounding_period_rate(rate, compounding)
    effective_payments = (
        Decimal(number_of_payments)
        * Decimal(compounding.periods_per_year)
        / Decimal(payment.periods_per_year)
    )
    return principal * rc / (ONE - (ONE + rc) ** -effective_payments)


def count_payments(start_date: date, end_date: date, payment: Union[Cadence, str]) -> int:
    """
    Number of scheduled payments between two dates

    Whole months in the term divided by the cadence's month count, floored,
    never less than one.
    """
    cadence = parse_cadence(payment)
    months = whole_months_between(start_date, end_date)
    return max(1, months // cadence.months_per_period)


def accrued_interest(
    principal: Numeric,
    annual_rate_percent: Numeric,
    from_date: date,
    to_date: date,
    compounding: Union[Cadence, str]
) -> Decimal:
    """
    Interest accrued on a balance between two dates

    Elapsed time is measured in fractional compounding periods of 365/m days
    and compounded with a fractional exponent:

        interest = P * ((1 + r)^(days / (365/m)) - 1)

    Returns zero for a zero rate or an empty/negative interval.
    """
    rate = to_decimal(annual_rate_percent)
    if rate == ZERO or to_date <= from_date:
        return round_money(ZERO)

    cadence = parse_cadence(compounding)
    periods = Decimal(cadence.periods_per_year)
    r = rate / HUNDRED / periods

    days = Decimal((to_date - from_date).days)
    elapsed_periods = days / (DAYS_PER_YEAR / periods)

    interest = to_decimal(principal) * ((ONE + r) ** elapsed_periods - ONE)
    return round_money(interest)


def estimate_payments_made(amount_paid: Numeric, payment_amount: Numeric) -> int:
    """Payments covered by the amount paid so far, rounded half up"""
    payment_amount = to_decimal(payment_amount)
    if payment_amount <= ZERO:
        return 0
    ratio = to_decimal(amount_paid) / payment_amount
    return int(ratio.quantize(ONE, rounding=ROUND_HALF_UP))
