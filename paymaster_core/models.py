"""
Loan Domain Models

Employee loans (salary advances repaid through payroll), their approval
chain, supporting documents and the payments posted against them.
"""

from decimal import Decimal
from datetime import date, datetime
from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum

from .numeric import ZERO, parse_date, to_number
from .storage import StorageRecord


class LoanStatus(Enum):
    """Loan lifecycle states"""
    PENDING = "pending"        # Requested, awaiting approval
    APPROVED = "approved"      # Approved, not yet deducting
    ACTIVE = "active"          # Deducted from payroll each period
    COMPLETED = "completed"    # Remaining balance reached zero
    REJECTED = "rejected"      # Declined


TERMINAL_LOAN_STATUSES = frozenset({LoanStatus.COMPLETED, LoanStatus.REJECTED})


class StageStatus(Enum):
    """Approval stage outcomes"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _timestamps(data: Dict[str, Any]) -> Dict[str, datetime]:
    return {
        'created_at': datetime.fromisoformat(data['created_at']),
        'updated_at': datetime.fromisoformat(data['updated_at'])
    }


@dataclass
class Loan(StorageRecord):
    """Employee salary advance under repayment"""
    employee_id: str
    amount: Decimal
    monthly_deduction: Decimal
    start_date: date
    interest_rate: Decimal = ZERO       # Annual percentage, e.g. 5 for 5%
    end_date: Optional[date] = None     # None while active
    status: LoanStatus = LoanStatus.PENDING
    remaining_amount: Optional[Decimal] = None
    reason: Optional[str] = None
    approved_by: Optional[str] = None

    def __post_init__(self):
        if self.remaining_amount is None:
            self.remaining_amount = self.amount

    @property
    def is_terminal(self) -> bool:
        """Completed or rejected loans no longer change"""
        return self.status in TERMINAL_LOAN_STATUSES

    @property
    def is_deducting(self) -> bool:
        """Check if payroll should deduct for this loan (legacy approved included)"""
        return (
            self.status in (LoanStatus.ACTIVE, LoanStatus.APPROVED)
            and self.remaining_amount > ZERO
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        return cls(
            id=data['id'],
            **_timestamps(data),
            employee_id=data['employee_id'],
            amount=to_number(data['amount']),
            monthly_deduction=to_number(data['monthly_deduction']),
            start_date=parse_date(data['start_date']),
            interest_rate=to_number(data.get('interest_rate')),
            end_date=parse_date(data.get('end_date')),
            status=LoanStatus(data['status']),
            remaining_amount=to_number(data.get('remaining_amount')),
            reason=data.get('reason'),
            approved_by=data.get('approved_by')
        )


@dataclass
class ApprovalStage(StorageRecord):
    """One step in a loan's approval chain"""
    loan_id: str
    stage_name: str
    stage_order: int = 0
    status: StageStatus = StageStatus.PENDING
    approver_id: Optional[str] = None
    acted_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == StageStatus.APPROVED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApprovalStage':
        acted_at = data.get('acted_at')
        return cls(
            id=data['id'],
            **_timestamps(data),
            loan_id=data['loan_id'],
            stage_name=data['stage_name'],
            stage_order=int(data.get('stage_order') or 0),
            status=StageStatus(data['status']),
            approver_id=data.get('approver_id'),
            acted_at=datetime.fromisoformat(acted_at) if acted_at else None,
            notes=data.get('notes')
        )


@dataclass
class LoanDocument(StorageRecord):
    """Supporting document attached to a loan; content is opaque here"""
    loan_id: str
    title: str
    file_url: str
    document_type: Optional[str] = None
    uploaded_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanDocument':
        return cls(
            id=data['id'],
            **_timestamps(data),
            loan_id=data['loan_id'],
            title=data['title'],
            file_url=data['file_url'],
            document_type=data.get('document_type'),
            uploaded_by=data.get('uploaded_by')
        )


@dataclass
class LoanPayment(StorageRecord):
    """Amount applied to a loan from a payroll run"""
    loan_id: str
    employee_id: str
    payroll_run_id: str
    amount: Decimal
    applied_date: date
    source: str = "payroll"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanPayment':
        return cls(
            id=data['id'],
            **_timestamps(data),
            loan_id=data['loan_id'],
            employee_id=data['employee_id'],
            payroll_run_id=data['payroll_run_id'],
            amount=to_number(data['amount']),
            applied_date=parse_date(data['applied_date']),
            source=data.get('source', 'payroll')
        )
