"""Fees schemas: assignment, ledger rows, payments, concessions, balances."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fee_ledger.core.amounts import DECIMAL_PLACES, MAX_DIGITS, amount_problem
from fee_ledger.core.enums import AssignmentSkipReason, PaymentStatus


# --- Assignment ---
class AssignFeesRequest(BaseModel):
    """
    Target: exactly one of student_ids / class_id. With class_id, assigned_group_id narrows the
    roster to the students already holding fee records of that fee type group.
    Catalog reference: exactly one of fee_type_id / fee_type_group_id / fee_category_ids.
    """

    student_ids: Optional[List[UUID]] = None
    class_id: Optional[UUID] = None
    assigned_group_id: Optional[UUID] = None

    fee_type_id: Optional[UUID] = None
    fee_type_group_id: Optional[UUID] = None
    fee_category_ids: Optional[List[UUID]] = None
    installment_id: Optional[UUID] = None
    academic_year_id: Optional[UUID] = None

    amount: Optional[Decimal] = Field(
        None,
        ge=0,
        max_digits=MAX_DIGITS,
        decimal_places=DECIMAL_PLACES,
        description="Override for single fee type assignment",
    )
    amounts: Dict[UUID, Decimal] = Field(
        default_factory=dict,
        description="fee_type_id (group) or fee_category_id (categories) -> amount",
    )
    due_date: Optional[date] = None
    notes: Optional[str] = None
    allow_duplicates: bool = Field(False, description="Charge again even if an identical row exists")

    @model_validator(mode="after")
    def validate_selection(self) -> "AssignFeesRequest":
        if (self.student_ids is None) == (self.class_id is None):
            raise ValueError("Provide exactly one of student_ids or class_id")
        if self.assigned_group_id is not None and self.class_id is None:
            raise ValueError("assigned_group_id only applies with class_id")
        refs = [self.fee_type_id, self.fee_type_group_id, self.fee_category_ids]
        if sum(1 for r in refs if r is not None) != 1:
            raise ValueError("Provide exactly one of fee_type_id, fee_type_group_id or fee_category_ids")
        if self.fee_category_ids is not None and not self.fee_category_ids:
            raise ValueError("fee_category_ids cannot be empty")
        if self.amount is not None and self.fee_type_id is None:
            raise ValueError("amount only applies to fee_type_id assignment")
        if any(v < 0 for v in self.amounts.values()):
            raise ValueError("Amounts cannot be negative")
        for value in self.amounts.values():
            problem = amount_problem(value)
            if problem:
                raise ValueError(problem)
        return self


class AssignmentSkip(BaseModel):
    student_id: UUID
    reference_id: Optional[UUID] = None
    reason: AssignmentSkipReason


class AssignmentResult(BaseModel):
    created: int
    skipped: int
    skips: List[AssignmentSkip] = Field(default_factory=list)
    row_ids: List[UUID] = Field(default_factory=list)


# --- Ledger row ---
class LedgerRowResponse(BaseModel):
    id: UUID
    school_id: UUID
    student_id: UUID
    fee_category_id: Optional[UUID] = None
    fee_type_id: Optional[UUID] = None
    fee_type_group_id: Optional[UUID] = None
    installment_id: Optional[UUID] = None
    class_id: Optional[UUID] = None
    academic_year_id: Optional[UUID] = None
    assigned_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: PaymentStatus
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None
    notes: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime


class EditAssignmentRequest(BaseModel):
    assigned_amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


# --- Payment ---
class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., description="Must be greater than zero")
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    payment_mode: Optional[str] = Field(None, max_length=30, description="Name of one of the school's payment methods")
    note: Optional[str] = None


class LedgerPaymentResponse(BaseModel):
    id: UUID
    student_fee_payment_id: UUID
    student_id: UUID
    requested_amount: Decimal
    applied_amount: Decimal
    payment_date: date
    payment_mode: Optional[str] = None
    note: Optional[str] = None
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentResult(BaseModel):
    row: LedgerRowResponse
    payment: LedgerPaymentResponse
    applied_amount: Decimal
    clamped_amount: Decimal


# --- Concession ---
class ConcessionCreate(BaseModel):
    concession_type_id: UUID
    amount: Decimal
    remarks: Optional[str] = None


class ConcessionResponse(BaseModel):
    id: UUID
    student_fee_payment_id: UUID
    student_id: UUID
    concession_type_id: UUID
    amount: Decimal
    remarks: Optional[str] = None
    applied_by: Optional[UUID] = None
    reversal_of_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ConcessionResult(BaseModel):
    row: LedgerRowResponse
    concession: ConcessionResponse


# --- Reports ---
class StudentBalanceResponse(BaseModel):
    student_id: UUID
    total_assigned: Decimal
    total_paid: Decimal
    outstanding: Decimal
    open_rows: int
    overdue_rows: int
    is_defaulter: bool


class ClassTotalsResponse(BaseModel):
    class_id: UUID
    total_assigned: Decimal
    total_paid: Decimal
    outstanding: Decimal
    row_count: int
    student_count: int
    pending_count: int


class PendingCountResponse(BaseModel):
    student_id: Optional[UUID] = None
    pending_count: int
