"""
Amortization Module

Generates month-by-month repayment schedules for employee loans repaid by a
fixed payroll deduction, and projects them into storage rows.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from .exceptions import InsufficientPaymentError, ScheduleValidationError
from .logging_config import get_logger
from .numeric import ZERO, add_months, parse_date, round_amount, to_number


logger = get_logger("paymaster.amortization")

MONTHS_PER_YEAR = Decimal('12')


@dataclass
class ScheduleEntry:
    """Single installment in an amortization schedule"""
    installment_number: int
    due_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal

    def __post_init__(self):
        # Validate that payment equals principal + interest
        calculated_payment = self.principal_amount + self.interest_amount
        if abs(calculated_payment - self.payment_amount) > Decimal('0.01'):
            raise ValueError(f"Payment amount {self.payment_amount} does not equal "
                             f"principal {self.principal_amount} + "
                             f"interest {self.interest_amount}")


def monthly_rate(interest_rate: Any) -> Decimal:
    """Convert an annual percentage rate (e.g. 7.5) to a monthly fraction"""
    return to_number(interest_rate) / Decimal('100') / MONTHS_PER_YEAR


def generate_amortization_schedule(
    amount: Any,
    monthly_payment: Any,
    interest_rate: Any = 0,
    start_date: Any = None,
    end_date: Any = None
) -> List[ScheduleEntry]:
    """
    Generate the repayment schedule for a fixed monthly payment

    Args:
        amount: Principal to repay
        monthly_payment: Fixed payroll deduction per month
        interest_rate: Annual percentage rate (0 for interest-free advances)
        start_date: Due date of the first installment
        end_date: Optional hard end; an installment due after it retires
            the whole remaining balance

    The schedule has no installment cap: its length is roughly amount
    divided by (payment minus interest), so a huge amount repaid by a tiny
    payment builds a correspondingly huge list.

    Returns:
        List of ScheduleEntry objects; the last one has a zero balance

    Raises:
        ScheduleValidationError: amount or payment not positive, negative
            rate, or unreadable start date
        InsufficientPaymentError: payment does not exceed the interest due
    """
    principal = round_amount(amount)
    payment = round_amount(monthly_payment)
    rate = to_number(interest_rate)

    if to_number(amount) <= ZERO:
        raise ScheduleValidationError("Loan amount must be greater than zero.")
    if principal <= ZERO:
        raise ScheduleValidationError(f"Loan amount {amount!r} rounds to zero.")
    if to_number(monthly_payment) <= ZERO:
        raise ScheduleValidationError("Monthly payment must be greater than zero.")
    if payment <= ZERO:
        raise ScheduleValidationError(f"Monthly payment {monthly_payment!r} rounds to zero.")
    if rate < ZERO:
        raise ScheduleValidationError("Interest rate cannot be negative.")

    start = parse_date(start_date)
    if start is None:
        raise ScheduleValidationError(f"Start date {start_date!r} is not a valid date.")
    end = parse_date(end_date) if end_date is not None else None

    periodic_rate = monthly_rate(rate)
    schedule = []
    balance = principal
    installment = 1

    while balance > ZERO:
        due_date = add_months(start, installment - 1)
        interest_amount = round_amount(balance * periodic_rate)

        if end is not None and due_date > end:
            # Balloon payment: retire everything that is left
            schedule.append(ScheduleEntry(
                installment_number=installment,
                due_date=due_date,
                payment_amount=balance + interest_amount,
                principal_amount=balance,
                interest_amount=interest_amount,
                remaining_balance=ZERO
            ))
            break

        if payment <= interest_amount:
            raise InsufficientPaymentError(
                "Monthly payment is insufficient to cover interest; "
                "adjust policy or payment amount."
            )

        # Cap the final installment at the remaining balance
        principal_amount = min(payment - interest_amount, balance)
        balance = balance - principal_amount

        schedule.append(ScheduleEntry(
            installment_number=installment,
            due_date=due_date,
            payment_amount=principal_amount + interest_amount,
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            remaining_balance=balance
        ))
        installment += 1

    logger.debug(
        "Generated %d installments for principal %s at %s%% with payment %s",
        len(schedule), principal, rate, payment
    )
    return schedule


def map_schedule_to_insert(loan_id: str, schedule: Sequence[ScheduleEntry]) -> List[Dict[str, Any]]:
    """Project schedule entries into storage rows keyed by loan"""
    return [
        {
            'loan_id': loan_id,
            'installment_number': entry.installment_number,
            'due_date': entry.due_date.isoformat(),
            'principal_amount': str(entry.principal_amount),
            'interest_amount': str(entry.interest_amount),
            'payment_amount': str(entry.payment_amount),
            'remaining_balance': str(entry.remaining_balance),
            'status': 'pending'
        }
        for entry in schedule
    ]


def schedule_entry_from_row(row: Dict[str, Any]) -> ScheduleEntry:
    """Convert a stored schedule row back to a ScheduleEntry"""
    return ScheduleEntry(
        installment_number=int(row['installment_number']),
        due_date=parse_date(row['due_date']),
        payment_amount=to_number(row['payment_amount']),
        principal_amount=to_number(row['principal_amount']),
        interest_amount=to_number(row['interest_amount']),
        remaining_balance=to_number(row['remaining_balance'])
    )


def total_principal(schedule: Sequence[Any]) -> Decimal:
    """Sum principal portions over a schedule"""
    return sum((to_number(getattr(entry, 'principal_amount', None)) for entry in schedule), ZERO)
