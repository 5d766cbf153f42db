"""
Test suite for amortization module

Tests schedule generation for fixed payroll deductions: termination, exact
payoff, principal conservation, insufficient payment detection and the
storage row projection. All financial math must be exact.
"""

import pytest
from decimal import Decimal
from datetime import date

from paymaster_core.amortization import (
    ScheduleEntry, generate_amortization_schedule, map_schedule_to_insert,
    schedule_entry_from_row, total_principal, monthly_rate
)
from paymaster_core.exceptions import InsufficientPaymentError, ScheduleValidationError


class TestScheduleEntry:
    """Test schedule entry validation"""

    def test_valid_entry(self):
        """Test creating a consistent schedule entry"""
        entry = ScheduleEntry(
            installment_number=1,
            due_date=date(2024, 1, 1),
            payment_amount=Decimal('100.00'),
            principal_amount=Decimal('90.00'),
            interest_amount=Decimal('10.00'),
            remaining_balance=Decimal('910.00')
        )

        assert entry.payment_amount == entry.principal_amount + entry.interest_amount

    def test_payment_must_equal_principal_plus_interest(self):
        """Test that payment amount must equal principal + interest"""
        with pytest.raises(ValueError, match="does not equal"):
            ScheduleEntry(
                installment_number=1,
                due_date=date(2024, 1, 1),
                payment_amount=Decimal('150.00'),
                principal_amount=Decimal('90.00'),
                interest_amount=Decimal('10.00'),
                remaining_balance=Decimal('910.00')
            )


class TestZeroInterestSchedule:
    """Test interest-free salary advances"""

    def test_uniform_schedule(self):
        """Test 1200 repaid at 100 a month gives twelve installments"""
        schedule = generate_amortization_schedule(
            amount=1200, monthly_payment=100, interest_rate=0, start_date="2024-01-01"
        )

        assert len(schedule) == 12
        assert schedule[0].remaining_balance == Decimal('1100')
        assert schedule[-1].remaining_balance == Decimal('0')
        assert all(entry.payment_amount == Decimal('100') for entry in schedule)
        assert all(entry.interest_amount == Decimal('0') for entry in schedule)

    def test_last_payment_smaller(self):
        """Test the final installment only covers what is left"""
        schedule = generate_amortization_schedule(
            amount=1050, monthly_payment=100, interest_rate=0, start_date="2024-01-01"
        )

        assert len(schedule) == 11  # ceil(1050 / 100)
        assert schedule[-1].payment_amount == Decimal('50.00')
        assert schedule[-1].principal_amount == Decimal('50.00')
        assert schedule[-1].remaining_balance == Decimal('0')

    def test_single_installment(self):
        """Test a payment larger than the principal retires it at once"""
        schedule = generate_amortization_schedule(
            amount=80, monthly_payment=100, interest_rate=0, start_date="2024-01-01"
        )

        assert len(schedule) == 1
        assert schedule[0].payment_amount == Decimal('80.00')
        assert schedule[0].remaining_balance == Decimal('0')

    def test_string_inputs(self):
        """Test numeric strings are accepted as they come from storage"""
        schedule = generate_amortization_schedule(
            amount="300.00", monthly_payment="100", interest_rate="0", start_date="2024-01-01"
        )

        assert len(schedule) == 3


class TestInterestBearingSchedule:
    """Test schedules with accruing interest"""

    def test_first_installment_split(self):
        """Test interest accrues on the opening balance"""
        schedule = generate_amortization_schedule(
            amount=1000, monthly_payment=100, interest_rate=12, start_date="2024-01-01"
        )

        first = schedule[0]
        assert first.interest_amount == Decimal('10.00')  # 1000 * 12% / 12
        assert first.principal_amount == Decimal('90.00')
        assert first.remaining_balance == Decimal('910.00')

    def test_terminates_with_exact_zero(self):
        """Test the final balance is exactly zero"""
        schedule = generate_amortization_schedule(
            amount=5000, monthly_payment=333.33, interest_rate=7.5, start_date="2024-01-15"
        )

        assert schedule[-1].remaining_balance == Decimal('0')
        assert all(entry.remaining_balance > 0 for entry in schedule[:-1])

    def test_long_schedule_is_not_capped(self):
        """Test schedules longer than fifty years run to payoff"""
        schedule = generate_amortization_schedule(
            amount=700, monthly_payment=1, interest_rate=0, start_date="2024-01-01"
        )

        assert len(schedule) == 700
        assert schedule[-1].remaining_balance == Decimal('0')

    def test_principal_conservation(self):
        """Test principal portions add up to the loan amount"""
        schedule = generate_amortization_schedule(
            amount=2500, monthly_payment=220, interest_rate=9, start_date="2024-03-01"
        )

        assert total_principal(schedule) == Decimal('2500.00')

    def test_balance_strictly_decreases(self):
        """Test remaining balance falls every month"""
        schedule = generate_amortization_schedule(
            amount=2500, monthly_payment=220, interest_rate=9, start_date="2024-03-01"
        )

        balances = [entry.remaining_balance for entry in schedule]
        assert all(later < earlier for earlier, later in zip(balances, balances[1:]))

    def test_payment_equals_principal_plus_interest(self):
        """Test each installment splits exactly"""
        schedule = generate_amortization_schedule(
            amount=1234.56, monthly_payment=150, interest_rate=5.25, start_date="2024-01-01"
        )

        for entry in schedule:
            assert entry.payment_amount == entry.principal_amount + entry.interest_amount

    def test_installments_numbered_sequentially(self):
        """Test installment numbers start at one and increase by one"""
        schedule = generate_amortization_schedule(
            amount=1000, monthly_payment=100, interest_rate=12, start_date="2024-01-01"
        )

        assert [entry.installment_number for entry in schedule] == list(range(1, len(schedule) + 1))

    def test_monthly_rate(self):
        """Test annual percentage converts to a monthly fraction"""
        assert monthly_rate(12) == Decimal('0.01')
        assert monthly_rate(0) == Decimal('0')


class TestDueDates:
    """Test installment due dates"""

    def test_monthly_due_dates(self):
        """Test due dates advance one calendar month"""
        schedule = generate_amortization_schedule(
            amount=300, monthly_payment=100, start_date=date(2024, 11, 1)
        )

        assert [entry.due_date for entry in schedule] == [
            date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1)
        ]

    def test_month_end_clamping(self):
        """Test month-end start dates clamp to shorter months"""
        schedule = generate_amortization_schedule(
            amount=300, monthly_payment=100, start_date="2024-01-31"
        )

        assert [entry.due_date for entry in schedule] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)
        ]

    def test_end_date_balloon_payment(self):
        """Test an installment due after the end date retires the balance"""
        schedule = generate_amortization_schedule(
            amount=1200, monthly_payment=100, interest_rate=0,
            start_date="2024-01-01", end_date="2024-06-30"
        )

        assert len(schedule) == 7
        balloon = schedule[-1]
        assert balloon.due_date == date(2024, 7, 1)
        assert balloon.principal_amount == Decimal('600.00')
        assert balloon.payment_amount == Decimal('600.00')
        assert balloon.remaining_balance == Decimal('0')


class TestScheduleErrors:
    """Test rejection of unusable inputs"""

    def test_insufficient_payment(self):
        """Test a payment below the monthly interest is rejected"""
        with pytest.raises(InsufficientPaymentError, match="(?i)insufficient"):
            generate_amortization_schedule(
                amount=1000, monthly_payment=5, interest_rate=20, start_date="2024-01-01"
            )

    def test_payment_equal_to_interest(self):
        """Test a payment that only covers interest is rejected"""
        with pytest.raises(InsufficientPaymentError):
            generate_amortization_schedule(
                amount=1200, monthly_payment=10, interest_rate=10, start_date="2024-01-01"
            )

    @pytest.mark.parametrize("amount,payment", [(0, 100), (-50, 100), (1000, 0), (1000, "abc"), (None, 100)])
    def test_non_positive_inputs(self, amount, payment):
        """Test non-positive amounts are validation errors, not payment errors"""
        with pytest.raises(ScheduleValidationError) as exc_info:
            generate_amortization_schedule(
                amount=amount, monthly_payment=payment, start_date="2024-01-01"
            )

        assert not isinstance(exc_info.value, InsufficientPaymentError)

    def test_payment_rounding_to_zero(self):
        """Test a positive payment below one cent is reported as rounding away"""
        with pytest.raises(ScheduleValidationError, match="rounds to zero"):
            generate_amortization_schedule(
                amount=1000, monthly_payment="0.004", start_date="2024-01-01"
            )

    def test_amount_rounding_to_zero(self):
        """Test a positive amount below one cent is reported as rounding away"""
        with pytest.raises(ScheduleValidationError, match="rounds to zero"):
            generate_amortization_schedule(
                amount="0.001", monthly_payment=100, start_date="2024-01-01"
            )

    def test_out_of_range_amount(self):
        """Test amounts beyond float range are rejected rather than scheduled"""
        with pytest.raises(ScheduleValidationError, match="greater than zero"):
            generate_amortization_schedule(
                amount="1e400", monthly_payment=100, start_date="2024-01-01"
            )

    def test_negative_interest_rate(self):
        """Test negative rates are rejected"""
        with pytest.raises(ScheduleValidationError, match="negative"):
            generate_amortization_schedule(
                amount=1000, monthly_payment=100, interest_rate=-1, start_date="2024-01-01"
            )

    @pytest.mark.parametrize("start_date", ["not-a-date", "", None, "2024-13-01"])
    def test_invalid_start_date(self, start_date):
        """Test unreadable start dates are rejected"""
        with pytest.raises(ScheduleValidationError, match="not a valid date"):
            generate_amortization_schedule(
                amount=1000, monthly_payment=100, start_date=start_date
            )

    def test_error_types_are_distinct(self):
        """Test callers can tell the two failures apart"""
        assert not issubclass(InsufficientPaymentError, ScheduleValidationError)
        assert not issubclass(ScheduleValidationError, InsufficientPaymentError)
        assert issubclass(InsufficientPaymentError, ValueError)
        assert issubclass(ScheduleValidationError, ValueError)


class TestScheduleRows:
    """Test projection of schedules into storage rows"""

    def test_map_schedule_to_insert(self):
        """Test every row carries the loan id in installment order"""
        schedule = generate_amortization_schedule(
            amount=300, monthly_payment=100, interest_rate=0, start_date="2024-01-01"
        )

        rows = map_schedule_to_insert("loan-1", schedule)

        assert [row['installment_number'] for row in rows] == [1, 2, 3]
        assert all(row['loan_id'] == "loan-1" for row in rows)
        assert rows[0]['due_date'] == "2024-01-01"
        assert rows[0]['principal_amount'] == "100.00"
        assert rows[-1]['remaining_balance'] == "0.00"
        assert all(row['status'] == "pending" for row in rows)

    def test_map_empty_schedule(self):
        """Test an empty schedule maps to no rows"""
        assert map_schedule_to_insert("loan-1", []) == []

    def test_row_round_trip(self):
        """Test stored rows convert back to equal entries"""
        schedule = generate_amortization_schedule(
            amount=1000, monthly_payment=100, interest_rate=12, start_date="2024-01-01"
        )

        rows = map_schedule_to_insert("loan-1", schedule)
        restored = [schedule_entry_from_row(row) for row in rows]

        assert restored == schedule
