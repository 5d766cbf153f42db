"""Exception hierarchy for the loan and payroll engine."""


class PaymasterError(Exception):
    """Base exception for all paymaster errors."""


class ScheduleValidationError(PaymasterError, ValueError):
    """Raised when amortization inputs are malformed (amount, payment, rate or start date)."""


class InsufficientPaymentError(PaymasterError, ValueError):
    """Raised when the fixed payment cannot cover the interest accruing on the balance."""


class LoanNotFoundError(PaymasterError):
    """Raised when a referenced loan or approval stage does not exist."""


class InvalidLoanStateError(PaymasterError, ValueError):
    """Raised when a loan is in the wrong status for the requested operation."""


class LoanPolicyError(PaymasterError):
    """Raised when a loan fails strict policy validation at activation."""

    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result


class PayrollTotalsError(PaymasterError):
    """Raised when payroll totals do not balance (gross != deductions + net)."""
