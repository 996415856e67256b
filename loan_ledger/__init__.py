"""
Loan Ledger Engine

Loan amortization and payment-allocation core for a personal finance
backend: periodic payments under compound interest, interest accrual
between arbitrary dates, interest-first allocation and payoff.
"""

__version__ = "1.0.0"
