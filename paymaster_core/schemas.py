"""
Pydantic schemas for records handed over by the persistence layer

Records arrive camelCased with numeric columns as strings; these models
accept either spelling and convert into the domain dataclasses. Numeric
fields stay loose here and are normalized by the calculators.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid

from .amortization import ScheduleEntry
from .leave import VacationRequest
from .models import ApprovalStage, Loan, LoanStatus, StageStatus
from .numeric import parse_date, to_number
from .payroll import Employee, PayrollEntry


class RecordModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoanRecord(RecordModel):
    id: Optional[str] = None
    employee_id: str = Field("", alias="employeeId")
    amount: Any = None
    monthly_deduction: Any = Field(None, alias="monthlyDeduction")
    interest_rate: Any = Field(None, alias="interestRate")
    remaining_amount: Any = Field(None, alias="remainingAmount")
    start_date: Any = Field(None, alias="startDate")
    end_date: Any = Field(None, alias="endDate")
    status: LoanStatus = LoanStatus.PENDING
    reason: Optional[str] = None

    def to_domain(self) -> Loan:
        now = datetime.now(timezone.utc)
        amount = to_number(self.amount)
        return Loan(
            id=self.id or str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            employee_id=self.employee_id,
            amount=amount,
            monthly_deduction=to_number(self.monthly_deduction),
            start_date=parse_date(self.start_date),
            interest_rate=to_number(self.interest_rate),
            end_date=parse_date(self.end_date),
            status=self.status,
            remaining_amount=to_number(self.remaining_amount) if self.remaining_amount is not None else amount,
            reason=self.reason
        )


class ApprovalStageRecord(RecordModel):
    id: Optional[str] = None
    loan_id: str = Field("", alias="loanId")
    stage_name: str = Field(..., alias="stageName")
    stage_order: int = Field(0, alias="stageOrder")
    status: StageStatus = StageStatus.PENDING
    approver_id: Optional[str] = Field(None, alias="approverId")
    notes: Optional[str] = None

    def to_domain(self) -> ApprovalStage:
        now = datetime.now(timezone.utc)
        return ApprovalStage(
            id=self.id or str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=self.loan_id,
            stage_name=self.stage_name,
            stage_order=self.stage_order,
            status=self.status,
            approver_id=self.approver_id,
            notes=self.notes
        )


class ScheduleEntryRecord(RecordModel):
    installment_number: int = Field(0, alias="installmentNumber")
    due_date: Any = Field(None, alias="dueDate")
    principal_amount: Any = Field(None, alias="principalAmount")
    interest_amount: Any = Field(None, alias="interestAmount")
    payment_amount: Any = Field(None, alias="paymentAmount")
    remaining_balance: Any = Field(None, alias="remainingBalance")

    def to_domain(self) -> ScheduleEntry:
        principal = to_number(self.principal_amount)
        interest = to_number(self.interest_amount)
        payment = to_number(self.payment_amount) if self.payment_amount is not None else principal + interest
        return ScheduleEntry(
            installment_number=self.installment_number,
            due_date=parse_date(self.due_date),
            payment_amount=payment,
            principal_amount=principal,
            interest_amount=interest,
            remaining_balance=to_number(self.remaining_balance)
        )


class VacationRecord(RecordModel):
    employee_id: str = Field("", alias="employeeId")
    start_date: Any = Field(None, alias="startDate")
    end_date: Any = Field(None, alias="endDate")
    status: str = "pending"
    reason: Optional[str] = None
    pause_associated_loans: Optional[bool] = Field(None, alias="pauseAssociatedLoans")

    def to_domain(self) -> VacationRequest:
        return VacationRequest(
            employee_id=self.employee_id,
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            reason=self.reason,
            pause_associated_loans=self.pause_associated_loans
        )


class EmployeeRecord(RecordModel):
    id: str = ""
    salary: Any = None
    status: str = "active"

    def to_domain(self) -> Employee:
        return Employee(id=self.id, salary=self.salary, status=self.status)


class PayrollEntryRecord(RecordModel):
    employee_id: str = Field("", alias="employeeId")
    base_salary: Any = Field(None, alias="baseSalary")
    working_days: Optional[int] = Field(None, alias="workingDays")
    actual_working_days: Optional[int] = Field(None, alias="actualWorkingDays")
    allowances: Optional[Dict[str, Any]] = None
    employee: Optional[EmployeeRecord] = None

    def to_domain(self) -> PayrollEntry:
        return PayrollEntry(
            employee_id=self.employee_id,
            base_salary=self.base_salary,
            working_days=self.working_days,
            actual_working_days=self.actual_working_days,
            allowances=self.allowances,
            employee=self.employee.to_domain() if self.employee else None
        )
