"""
Loan Module

Handles the employee loan lifecycle on top of a storage backend: request,
approval stages, supporting documents, policy-checked activation with
schedule generation, and repayment through payroll deductions.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from typing import Any, List, Optional
import uuid

from .amortization import (
    ScheduleEntry, generate_amortization_schedule, map_schedule_to_insert,
    schedule_entry_from_row
)
from .exceptions import InvalidLoanStateError, LoanNotFoundError, LoanPolicyError
from .logging_config import get_logger, log_action
from .models import (
    ApprovalStage, Loan, LoanDocument, LoanPayment, LoanStatus, StageStatus
)
from .numeric import ZERO, parse_date, round_amount, to_number
from .policies import PolicyValidationResult, validate_loan_policies
from .storage import StorageInterface


logger = get_logger("paymaster.loans")

ACTIVATABLE_STATUSES = (LoanStatus.PENDING, LoanStatus.APPROVED)


class LoanManager:
    """
    Manages employee loans from request through completion
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage

        self.loans_table = "loans"
        self.stages_table = "loan_approval_stages"
        self.documents_table = "loan_documents"
        self.schedule_table = "loan_amortization_schedules"
        self.payments_table = "loan_payments"

    def create_loan(
        self,
        employee_id: str,
        amount: Any,
        monthly_deduction: Any,
        start_date: Any,
        interest_rate: Any = 0,
        end_date: Any = None,
        reason: Optional[str] = None
    ) -> Loan:
        """
        Record a new loan request

        Args:
            employee_id: Borrowing employee
            amount: Principal
            monthly_deduction: Fixed payroll deduction per month
            start_date: First deduction month
            interest_rate: Annual percentage rate
            end_date: Optional hard end date
            reason: Free-text justification

        Returns:
            Created Loan in pending status
        """
        start = parse_date(start_date)
        if start is None:
            raise ValueError(f"Invalid loan start date: {start_date!r}")

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            employee_id=employee_id,
            amount=round_amount(amount),
            monthly_deduction=round_amount(monthly_deduction),
            start_date=start,
            interest_rate=to_number(interest_rate),
            end_date=parse_date(end_date),
            reason=reason
        )
        self._save_loan(loan)

        log_action(
            logger, "info", "Loan requested",
            employee_id=employee_id, loan_id=loan.id,
            action="loan_created", resource="loan",
            extra={"amount": str(loan.amount), "monthly_deduction": str(loan.monthly_deduction)}
        )
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def get_employee_loans(self, employee_id: str) -> List[Loan]:
        """Get all loans for an employee"""
        rows = self.storage.find(self.loans_table, {"employee_id": employee_id})
        return [Loan.from_dict(row) for row in rows]

    def add_approval_stage(self, loan_id: str, stage_name: str, stage_order: int = 0) -> ApprovalStage:
        """Append a stage to the loan's approval chain"""
        self._require_loan(loan_id)

        now = datetime.now(timezone.utc)
        stage = ApprovalStage(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan_id,
            stage_name=stage_name,
            stage_order=stage_order
        )
        self.storage.save(self.stages_table, stage.id, stage.to_dict())
        return stage

    def record_stage_decision(
        self,
        stage_id: str,
        status: Any,
        approver_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> ApprovalStage:
        """Approve or reject one approval stage"""
        data = self.storage.load(self.stages_table, stage_id)
        if not data:
            raise LoanNotFoundError(f"Approval stage {stage_id} not found")

        status = StageStatus(status)
        stage = ApprovalStage.from_dict(data)
        now = datetime.now(timezone.utc)
        stage.status = status
        stage.approver_id = approver_id
        stage.notes = notes
        stage.acted_at = now
        stage.updated_at = now
        self.storage.save(self.stages_table, stage.id, stage.to_dict())

        log_action(
            logger, "info", f"Approval stage {stage.stage_name} {status.value}",
            loan_id=stage.loan_id, action="loan_stage_decided", resource="loan_approval_stage",
            extra={"stage_id": stage.id, "approver_id": approver_id}
        )
        return stage

    def get_approval_stages(self, loan_id: str) -> List[ApprovalStage]:
        """Get the approval chain ordered by stage order"""
        rows = self.storage.find(self.stages_table, {"loan_id": loan_id})
        stages = [ApprovalStage.from_dict(row) for row in rows]
        stages.sort(key=lambda s: (s.stage_order, s.created_at))
        return stages

    def attach_document(
        self,
        loan_id: str,
        title: str,
        file_url: str,
        document_type: Optional[str] = None,
        uploaded_by: Optional[str] = None
    ) -> LoanDocument:
        """Attach a supporting document reference to a loan"""
        self._require_loan(loan_id)

        now = datetime.now(timezone.utc)
        document = LoanDocument(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan_id,
            title=title,
            file_url=file_url,
            document_type=document_type,
            uploaded_by=uploaded_by
        )
        self.storage.save(self.documents_table, document.id, document.to_dict())
        return document

    def get_documents(self, loan_id: str) -> List[LoanDocument]:
        rows = self.storage.find(self.documents_table, {"loan_id": loan_id})
        return [LoanDocument.from_dict(row) for row in rows]

    def check_compliance(
        self,
        loan_id: str,
        employee_salary: Any = None,
        strict: bool = False
    ) -> PolicyValidationResult:
        """Run the policy validator over the loan's stored state"""
        loan = self._require_loan(loan_id)
        return validate_loan_policies(
            loan,
            approval_stages=self.get_approval_stages(loan_id),
            documents=self.get_documents(loan_id),
            existing_schedule=self.get_schedule(loan_id),
            employee_salary=employee_salary,
            strict=strict
        )

    def activate_loan(self, loan_id: str, employee_salary: Any) -> Loan:
        """
        Activate a loan after strict policy validation

        Generates and stores the amortization schedule and moves the loan to
        active in one atomic step.

        Raises:
            InvalidLoanStateError: loan is not pending or approved
            LoanPolicyError: strict validation found violations
            ScheduleValidationError, InsufficientPaymentError: no schedule
                can be generated for the loan's terms
        """
        loan = self._require_loan(loan_id)
        if loan.status not in ACTIVATABLE_STATUSES:
            raise InvalidLoanStateError(
                f"Can only activate pending or approved loans, loan is {loan.status.value}"
            )

        result = self.check_compliance(loan_id, employee_salary=employee_salary, strict=True)
        if not result.is_compliant:
            log_action(
                logger, "warning", "Loan activation refused by policy",
                employee_id=loan.employee_id, loan_id=loan_id,
                action="loan_activation_refused", resource="loan",
                extra={"violations": result.violations}
            )
            raise LoanPolicyError(
                f"Loan {loan_id} violates lending policy: " + " ".join(result.violations),
                result=result
            )

        with self.storage.atomic():
            schedule = self._replace_schedule(loan)
            loan.status = LoanStatus.ACTIVE
            loan.updated_at = datetime.now(timezone.utc)
            self._save_loan(loan)

        log_action(
            logger, "info", "Loan activated",
            employee_id=loan.employee_id, loan_id=loan_id,
            action="loan_activated", resource="loan",
            extra={"installments": len(schedule), "warnings": result.warnings}
        )
        return loan

    def generate_schedule(self, loan_id: str, correction: bool = False) -> List[ScheduleEntry]:
        """
        Regenerate and store the loan's schedule, replacing any previous one

        Completed and rejected loans keep their schedule unless correction
        is explicitly requested.
        """
        loan = self._require_loan(loan_id)
        if loan.is_terminal and not correction:
            raise InvalidLoanStateError(
                f"Schedule of {loan.status.value} loan {loan_id} can only be changed as a correction"
            )

        with self.storage.atomic():
            schedule = self._replace_schedule(loan)

        log_action(
            logger, "info", "Loan schedule regenerated",
            employee_id=loan.employee_id, loan_id=loan_id,
            action="loan_schedule_generated", resource="loan_amortization_schedule",
            extra={"installments": len(schedule), "correction": correction}
        )
        return schedule

    def get_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        """Get the stored schedule ordered by installment number"""
        rows = self.storage.find(self.schedule_table, {"loan_id": loan_id})
        schedule = [schedule_entry_from_row(row) for row in rows]
        schedule.sort(key=lambda entry: entry.installment_number)
        return schedule

    def reject_loan(self, loan_id: str, notes: Optional[str] = None) -> Loan:
        """Reject a loan that has not started deducting"""
        loan = self._require_loan(loan_id)
        if loan.status not in ACTIVATABLE_STATUSES:
            raise InvalidLoanStateError(
                f"Can only reject pending or approved loans, loan is {loan.status.value}"
            )

        loan.status = LoanStatus.REJECTED
        loan.updated_at = datetime.now(timezone.utc)
        self._save_loan(loan)

        log_action(
            logger, "info", "Loan rejected",
            employee_id=loan.employee_id, loan_id=loan_id,
            action="loan_rejected", resource="loan",
            extra={"notes": notes} if notes else None
        )
        return loan

    def apply_payroll_deduction(
        self,
        employee_id: str,
        amount: Any,
        payroll_run_id: str,
        applied_date: Any
    ) -> List[LoanPayment]:
        """
        Spread a payroll loan deduction over the employee's active loans

        Oldest loans are served first (start date, creation time, id); each
        receives at most its remaining balance and its monthly deduction.
        Loans whose balance reaches zero are completed.

        Returns:
            LoanPayment records created, one per loan that received money
        """
        unallocated = round_amount(amount)
        if unallocated <= ZERO:
            return []

        applied_on = parse_date(applied_date)
        if applied_on is None:
            raise ValueError(f"Invalid applied date: {applied_date!r}")

        loans = [
            loan for loan in self.get_employee_loans(employee_id)
            if loan.status == LoanStatus.ACTIVE and loan.remaining_amount > ZERO
        ]
        loans.sort(key=lambda loan: (loan.start_date, loan.created_at, loan.id))

        payments = []
        with self.storage.atomic():
            for loan in loans:
                if unallocated <= ZERO:
                    break
                if loan.monthly_deduction <= ZERO:
                    continue

                applied = min(loan.remaining_amount, loan.monthly_deduction, unallocated)
                payment = self._post_payment(loan, applied, payroll_run_id, applied_on)
                payments.append(payment)
                unallocated -= applied

        return payments

    def get_loan_payments(self, loan_id: str) -> List[LoanPayment]:
        """Get payment history for loan"""
        rows = self.storage.find(self.payments_table, {"loan_id": loan_id})
        payments = [LoanPayment.from_dict(row) for row in rows]
        payments.sort(key=lambda p: (p.applied_date, p.created_at))
        return payments

    def _post_payment(self, loan: Loan, applied: Decimal, payroll_run_id: str, applied_on: date) -> LoanPayment:
        now = datetime.now(timezone.utc)
        payment = LoanPayment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan.id,
            employee_id=loan.employee_id,
            payroll_run_id=payroll_run_id,
            amount=applied,
            applied_date=applied_on
        )
        self.storage.save(self.payments_table, payment.id, payment.to_dict())

        loan.remaining_amount = max(ZERO, loan.remaining_amount - applied)
        if loan.remaining_amount == ZERO:
            loan.status = LoanStatus.COMPLETED
        loan.updated_at = now
        self._save_loan(loan)

        log_action(
            logger, "info",
            "Loan completed" if loan.status == LoanStatus.COMPLETED else "Loan deduction applied",
            employee_id=loan.employee_id, loan_id=loan.id,
            action="loan_payment_applied", resource="loan_payment",
            extra={
                "payroll_run_id": payroll_run_id,
                "amount": str(applied),
                "remaining_amount": str(loan.remaining_amount)
            }
        )
        return payment

    def _replace_schedule(self, loan: Loan) -> List[ScheduleEntry]:
        # Schedules are recomputed wholesale, never patched
        schedule = generate_amortization_schedule(
            amount=loan.amount,
            monthly_payment=loan.monthly_deduction,
            interest_rate=loan.interest_rate,
            start_date=loan.start_date,
            end_date=loan.end_date
        )
        for row in self.storage.find(self.schedule_table, {"loan_id": loan.id}):
            self.storage.delete(self.schedule_table, self._schedule_row_id(loan.id, row['installment_number']))
        for row in map_schedule_to_insert(loan.id, schedule):
            self.storage.save(self.schedule_table, self._schedule_row_id(loan.id, row['installment_number']), row)
        return schedule

    @staticmethod
    def _schedule_row_id(loan_id: str, installment_number: int) -> str:
        return f"{loan_id}_{installment_number}"

    def _require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise LoanNotFoundError(f"Loan {loan_id} not found")
        return loan

    def _save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
