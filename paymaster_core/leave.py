"""
Leave Pause Module

Decides whether an employee's loan deductions are suspended for a payroll
period because of approved leave that asked for it.
"""

from datetime import date
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .numeric import parse_date


PAUSE_LOANS_TAG = "[pause-loans]"


@dataclass
class VacationRequest:
    """
    Employee leave interval.

    pause_associated_loans is the structured pause flag. Older records leave
    it unset and carry the directive as a "[pause-loans]" tag in the reason.
    """
    employee_id: str
    start_date: Any
    end_date: Any
    status: str
    reason: Optional[str] = None
    pause_associated_loans: Optional[bool] = None


def has_pause_directive(vacation: Any) -> bool:
    """Structured flag when set, otherwise the exact tag in the reason text"""
    flag = getattr(vacation, 'pause_associated_loans', None)
    if flag is not None:
        return bool(flag)
    reason = getattr(vacation, 'reason', None)
    return PAUSE_LOANS_TAG in str(reason or "")


def overlaps_period(vacation: Any, start: date, end: date) -> bool:
    """Inclusive overlap of the vacation interval with [start, end]"""
    vacation_start = parse_date(getattr(vacation, 'start_date', None))
    vacation_end = parse_date(getattr(vacation, 'end_date', None))
    if vacation_start is None or vacation_end is None:
        return False
    return vacation_start <= end and vacation_end >= start


def should_pause_loan_for_leave(vacations: Optional[Iterable[Any]], start: Any, end: Any) -> bool:
    """
    Check if loan deductions should be skipped for the period [start, end]

    True when any vacation is approved, overlaps the period and carries the
    pause directive. Never raises; unreadable dates simply do not match.
    """
    period_start = parse_date(start)
    period_end = parse_date(end)
    if period_start is None or period_end is None:
        return False

    return any(
        getattr(vacation, 'status', None) == "approved"
        and overlaps_period(vacation, period_start, period_end)
        and has_pause_directive(vacation)
        for vacation in vacations or []
    )
