"""
Paymaster Core

Loan lifecycle engine and payroll arithmetic for HR/payroll administration:
amortization schedules, loan policy validation, leave-driven pause of loan
deductions and working-days payroll adjustments. All money math uses Decimal.
"""

__version__ = "1.0.0"
