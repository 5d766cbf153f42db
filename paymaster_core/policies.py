"""
Loan Policy Module

Evaluates a loan, its approval chain, its supporting documents and its stored
schedule against the lending rules. The result is advisory data: callers
decide whether a violation blocks activation. The message texts are shown to
users verbatim and must stay stable.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from enum import Enum

from .amortization import monthly_rate, total_principal
from .config import get_config
from .logging_config import get_logger
from .numeric import ZERO, parse_date, to_number


logger = get_logger("paymaster.policies")

MAX_DEDUCTION_RATIO = Decimal('0.5')
WARN_DEDUCTION_RATIO = Decimal('0.35')

AMOUNT_NOT_POSITIVE = "Loan amount must be greater than zero."
DEDUCTION_NOT_POSITIVE = "Monthly deduction must be greater than zero."
START_AFTER_END = "Start date must be before the end date."
DEDUCTION_BELOW_INTEREST = "Monthly deduction must exceed the interest portion to reduce principal."
DEDUCTION_OVER_MAX_RATIO = "Monthly deduction exceeds 50% of employee salary."
DEDUCTION_OVER_WARN_RATIO = "Monthly deduction exceeds 35% of employee salary."
MISSING_DOCUMENTS = "At least one supporting document must be uploaded before activation."
SCHEDULE_SHORTFALL = "Amortization schedule does not cover the full loan amount."


def stage_not_approved_message(stage_name: str, status: str) -> str:
    return f'Approval stage "{stage_name}" is not approved ({status}).'


@dataclass
class PolicyValidationResult:
    """Compliance verdict: violations block, warnings inform"""
    violations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_compliant(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        """Response payload with the field names clients key off"""
        return {
            "isCompliant": self.is_compliant,
            "violations": list(self.violations),
            "warnings": list(self.warnings),
        }


def _status_text(status: Any) -> str:
    if isinstance(status, Enum):
        return str(status.value)
    return str(status)


def validate_loan_policies(
    loan: Any,
    approval_stages: Optional[Sequence[Any]] = None,
    documents: Optional[Sequence[Any]] = None,
    existing_schedule: Optional[Sequence[Any]] = None,
    employee_salary: Any = None,
    strict: bool = False
) -> PolicyValidationResult:
    """
    Check a loan against every lending rule

    Every rule runs; nothing short-circuits. With strict=True, missing
    approvals and missing documents are violations; otherwise they are
    reported as warnings.

    Args:
        loan: Object with amount, monthly_deduction, interest_rate,
            start_date and end_date
        approval_stages: Stages with stage_name, stage_order and status
        documents: Supporting documents; only their count matters
        existing_schedule: Stored schedule entries with principal_amount
        employee_salary: Monthly salary used for the affordability check
        strict: Treat approval and documentation gaps as blocking

    Returns:
        PolicyValidationResult
    """
    result = PolicyValidationResult()
    gaps = result.violations if strict else result.warnings

    amount = to_number(getattr(loan, 'amount', None))
    payment = to_number(getattr(loan, 'monthly_deduction', None))
    rate = to_number(getattr(loan, 'interest_rate', None))

    if amount <= ZERO:
        result.violations.append(AMOUNT_NOT_POSITIVE)
    if payment <= ZERO:
        result.violations.append(DEDUCTION_NOT_POSITIVE)

    start = parse_date(getattr(loan, 'start_date', None))
    end = parse_date(getattr(loan, 'end_date', None))
    if start and end and start > end:
        result.violations.append(START_AFTER_END)

    if rate > ZERO and payment <= amount * monthly_rate(rate):
        result.violations.append(DEDUCTION_BELOW_INTEREST)

    # Affordability
    if employee_salary is not None:
        salary = to_number(employee_salary)
        if salary > ZERO:
            ratio = payment / salary
            if ratio > MAX_DEDUCTION_RATIO:
                result.violations.append(DEDUCTION_OVER_MAX_RATIO)
            elif ratio > WARN_DEDUCTION_RATIO:
                result.warnings.append(DEDUCTION_OVER_WARN_RATIO)

    # Approval completeness, in stage order
    stages = sorted(approval_stages or [], key=lambda stage: to_number(getattr(stage, 'stage_order', 0)))
    for stage in stages:
        status = _status_text(getattr(stage, 'status', None))
        if status != "approved":
            gaps.append(stage_not_approved_message(getattr(stage, 'stage_name', ''), status))

    # Documentation
    if not documents:
        gaps.append(MISSING_DOCUMENTS)

    # Principal coverage of a stored schedule
    if existing_schedule:
        if total_principal(existing_schedule) + get_config().rounding_tolerance < amount:
            result.warnings.append(SCHEDULE_SHORTFALL)

    logger.debug(
        "Loan policy check (strict=%s): %d violations, %d warnings",
        strict, len(result.violations), len(result.warnings)
    )
    return result
