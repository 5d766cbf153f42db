"""
Payroll Module

Per-employee payroll arithmetic: working-days proration, loan deductions
(honouring leave pauses), event bonuses and deductions, allowance summaries
for payslips and exports, and run totals.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import re

from .config import get_config
from .exceptions import PayrollTotalsError
from .leave import should_pause_loan_for_leave
from .logging_config import get_logger
from .numeric import ZERO, parse_date, round_amount, to_number


logger = get_logger("paymaster.payroll")

BONUS_EVENT_TYPES = frozenset({"bonus", "commission", "allowance", "overtime"})
DEDUCTION_EVENT_TYPES = frozenset({"deduction", "penalty"})


@dataclass
class Employee:
    """Payroll view of an employee"""
    id: str
    salary: Any                  # Full monthly salary, numeric-like
    status: str = "active"


@dataclass
class PayrollEntry:
    """Stored payroll line as read back for display and export"""
    employee_id: str
    base_salary: Any
    working_days: Optional[int] = None
    actual_working_days: Optional[int] = None
    allowances: Optional[Mapping[str, Any]] = None
    employee: Optional[Employee] = None


@dataclass
class EmployeeEvent:
    """Bonus, penalty or other payroll-affecting event"""
    employee_id: str
    event_date: Any
    event_type: str
    amount: Any
    affects_payroll: bool = True
    status: str = "active"


@dataclass
class DeductionsConfig:
    """Statutory deductions; none are applied unless configured"""
    tax_deduction: Decimal = ZERO
    social_security_deduction: Decimal = ZERO
    health_insurance_deduction: Decimal = ZERO


@dataclass
class AllowanceLine:
    key: str
    label: str
    amount: Decimal


@dataclass
class AllowanceSummary:
    total: Decimal = ZERO
    entries: List[AllowanceLine] = field(default_factory=list)


@dataclass
class EmployeePayroll:
    """Computed payroll for one employee in one run"""
    employee_id: str
    gross_pay: Decimal
    base_salary: Decimal
    bonus_amount: Decimal
    allowance_amount: Decimal
    working_days: int
    actual_working_days: int
    vacation_days: int
    tax_deduction: Decimal
    social_security_deduction: Decimal
    health_insurance_deduction: Decimal
    loan_deduction: Decimal
    other_deductions: Decimal
    net_pay: Decimal
    adjustment_reason: Optional[str] = None
    loans_paused: bool = False
    allowances: AllowanceSummary = field(default_factory=AllowanceSummary)

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.tax_deduction
            + self.social_security_deduction
            + self.health_insurance_deduction
            + self.loan_deduction
            + self.other_deductions
        )

    def as_payroll_entry(self, employee: Optional[Employee] = None) -> PayrollEntry:
        """Stored-entry view used by the working-days adjustment and exports"""
        return PayrollEntry(
            employee_id=self.employee_id,
            base_salary=self.base_salary,
            working_days=self.working_days,
            actual_working_days=self.actual_working_days,
            allowances={line.key: line.amount for line in self.allowances.entries},
            employee=employee
        )


@dataclass
class PayrollTotals:
    gross_amount: Decimal
    total_deductions: Decimal
    net_amount: Decimal


def calculate_working_days_adjustment(entry: Any) -> Decimal:
    """
    Signed pay difference caused by working fewer or more days than standard

    The employee's full salary is preferred over the entry's base salary as
    the undiscounted reference. Fewer actual days give a negative result,
    more give a positive one; equal or unknown day counts return the raw
    difference.
    """
    base_salary = to_number(getattr(entry, 'base_salary', None))
    employee = getattr(entry, 'employee', None)
    employee_salary = getattr(employee, 'salary', None) if employee is not None else None
    full_salary = to_number(employee_salary if employee_salary is not None else getattr(entry, 'base_salary', None))

    difference = full_salary - base_salary
    if difference == ZERO:
        return ZERO

    actual = getattr(entry, 'actual_working_days', None)
    standard = getattr(entry, 'working_days', None)
    actual_days = actual if actual is not None else standard
    standard_days = standard if standard is not None else actual

    if actual_days is not None and standard_days is not None:
        actual_days = to_number(actual_days)
        standard_days = to_number(standard_days)
        if actual_days < standard_days:
            return -abs(difference)
        if actual_days > standard_days:
            return abs(difference)

    return difference


def format_allowance_label(key: str) -> str:
    """'travel_bonus' -> 'Travel Bonus Allowance', 'medicalAllowance' -> 'Medical Allowance'"""
    if not key:
        return "Allowance"

    spaced = re.sub(r'([a-z0-9])([A-Z])', r'\1 \2', key)
    spaced = re.sub(r'[_-]+', ' ', spaced)
    spaced = re.sub(r'\s+', ' ', spaced).strip()
    if not spaced:
        return "Allowance"

    label = " ".join(word.capitalize() for word in spaced.split(" "))
    if re.search(r'\ballowance\b', label, re.IGNORECASE):
        return label
    return f"{label} Allowance"


def _allowance_items(allowances: Any) -> List[Tuple[Any, Any]]:
    if allowances is None:
        return []
    if isinstance(allowances, Mapping):
        return list(allowances.items())
    if isinstance(allowances, (str, bytes)):
        return []
    try:
        return [tuple(pair) for pair in allowances if isinstance(pair, (tuple, list)) and len(pair) == 2]
    except TypeError:
        return []


def summarize_allowances(
    allowances: Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]
) -> AllowanceSummary:
    """
    Total the non-zero allowances and label them for display

    Accepts a mapping or (key, amount) pairs. Zero and non-numeric amounts are
    dropped; surviving entries keep their encounter order.
    """
    entries = []
    for key, value in _allowance_items(allowances):
        amount = to_number(value)
        if amount == ZERO:
            continue
        entries.append(AllowanceLine(key=str(key), label=format_allowance_label(str(key)), amount=amount))

    total = sum((line.amount for line in entries), ZERO)
    return AllowanceSummary(total=total, entries=entries)


def format_currency(amount: Any) -> str:
    """Format for display, e.g. 'KWD 1,250.000'"""
    settings = get_config()
    value = round_amount(amount, settings.currency_decimals)
    return f"{settings.currency_code} {value:,.{settings.currency_decimals}f}"


def format_allowance_summary_for_csv(summary_or_allowances: Any) -> str:
    """Single CSV cell: 'Total: ...; Housing Allowance: ...; ...'"""
    if isinstance(summary_or_allowances, AllowanceSummary):
        summary = summary_or_allowances
    else:
        summary = summarize_allowances(summary_or_allowances)

    if not summary.entries:
        return ""

    parts = []
    if len(summary.entries) > 1 and summary.total != ZERO:
        parts.append(f"Total: {format_currency(summary.total)}")
    parts.extend(f"{line.label}: {format_currency(line.amount)}" for line in summary.entries)
    return "; ".join(parts)


def count_vacation_days(vacations: Iterable[Any], start: date, end: date) -> int:
    """Approved leave days inside [start, end], both ends inclusive"""
    days = 0
    for vacation in vacations:
        if getattr(vacation, 'status', None) != "approved":
            continue
        vacation_start = parse_date(getattr(vacation, 'start_date', None))
        vacation_end = parse_date(getattr(vacation, 'end_date', None))
        if vacation_start is None or vacation_end is None:
            continue
        if vacation_start > end or vacation_end < start:
            continue
        clipped_start = max(vacation_start, start)
        clipped_end = min(vacation_end, end)
        days += (clipped_end - clipped_start).days + 1
    return days


def calculate_employee_payroll(
    employee: Employee,
    loans: Sequence[Any],
    vacation_requests: Sequence[Any],
    employee_events: Sequence[EmployeeEvent],
    start: Any,
    end: Any,
    working_days: int,
    attendance_days: Optional[int] = None,
    deductions: Optional[DeductionsConfig] = None,
    allowances: Optional[Mapping[str, Any]] = None
) -> EmployeePayroll:
    """
    Calculate payroll for a single employee over [start, end]

    Salary is prorated over the days actually worked (attendance-capped,
    minus approved leave). Loan deductions are skipped entirely when approved
    leave in the period asks for loans to be paused. No tax, social security
    or health insurance is deducted unless configured.
    """
    period_start = parse_date(start)
    period_end = parse_date(end)
    if period_start is None or period_end is None:
        raise ValueError(f"Invalid payroll period {start!r} - {end!r}")

    deductions = deductions or DeductionsConfig()
    settings = get_config()
    is_active = employee.status == "active"
    monthly_salary = to_number(employee.salary)

    employee_vacations = [v for v in vacation_requests if getattr(v, 'employee_id', None) == employee.id]
    vacation_days = count_vacation_days(employee_vacations, period_start, period_end)

    base_working = min(working_days, attendance_days) if attendance_days is not None else working_days
    actual_working_days = max(0, base_working - vacation_days)

    if is_active and working_days > 0:
        base_salary = round_amount(monthly_salary * actual_working_days / working_days)
    else:
        base_salary = ZERO

    employee_loans = [loan for loan in loans if loan.employee_id == employee.id and loan.is_deducting]
    loans_paused = bool(employee_loans) and should_pause_loan_for_leave(
        employee_vacations, period_start, period_end
    )
    if is_active and not loans_paused:
        loan_deduction = sum(
            (min(to_number(loan.monthly_deduction), to_number(loan.remaining_amount)) for loan in employee_loans),
            ZERO
        )
    else:
        loan_deduction = ZERO

    events_in_period = [
        event for event in employee_events
        if event.employee_id == employee.id
        and event.affects_payroll
        and event.status == "active"
        and event.event_type != "vacation"
        and parse_date(event.event_date) is not None
        and period_start <= parse_date(event.event_date) <= period_end
    ]
    bonus_amount = sum(
        (to_number(e.amount) for e in events_in_period if e.event_type in BONUS_EVENT_TYPES), ZERO
    )
    other_deductions = sum(
        (to_number(e.amount) for e in events_in_period if e.event_type in DEDUCTION_EVENT_TYPES), ZERO
    )

    allowance_summary = summarize_allowances(allowances) if is_active else AllowanceSummary()
    gross_pay = base_salary + bonus_amount + allowance_summary.total

    total_deductions = (
        deductions.tax_deduction
        + deductions.social_security_deduction
        + deductions.health_insurance_deduction
        + loan_deduction
        + other_deductions
    )
    net_pay = max(ZERO, gross_pay - total_deductions)

    reasons = []
    if vacation_days > 0:
        reasons.append(f"{vacation_days} vacation days.")
    if loans_paused:
        reasons.append("Loan deductions paused for leave.")
    if loan_deduction > ZERO:
        reasons.append(f"Loan deduction: {loan_deduction:.2f} {settings.currency_code}.")

    logger.debug(
        "Payroll for %s: %d/%d days, gross %s, loan deduction %s%s",
        employee.id, actual_working_days, working_days, gross_pay, loan_deduction,
        " (paused)" if loans_paused else ""
    )

    return EmployeePayroll(
        employee_id=employee.id,
        gross_pay=gross_pay,
        base_salary=base_salary,
        bonus_amount=bonus_amount,
        allowance_amount=allowance_summary.total,
        working_days=working_days,
        actual_working_days=actual_working_days,
        vacation_days=vacation_days,
        tax_deduction=deductions.tax_deduction,
        social_security_deduction=deductions.social_security_deduction,
        health_insurance_deduction=deductions.health_insurance_deduction,
        loan_deduction=loan_deduction,
        other_deductions=other_deductions,
        net_pay=net_pay,
        adjustment_reason=" ".join(reasons) or None,
        loans_paused=loans_paused,
        allowances=allowance_summary
    )


def calculate_totals(entries: Sequence[EmployeePayroll]) -> PayrollTotals:
    """Run totals; raises PayrollTotalsError if gross != deductions + net"""
    gross_amount = sum((e.gross_pay for e in entries), ZERO)
    total_deductions = sum((e.total_deductions for e in entries), ZERO)
    net_amount = sum((e.net_pay for e in entries), ZERO)

    if abs(gross_amount - total_deductions - net_amount) > get_config().rounding_tolerance:
        raise PayrollTotalsError("Totals do not balance")

    return PayrollTotals(
        gross_amount=gross_amount,
        total_deductions=total_deductions,
        net_amount=net_amount
    )
