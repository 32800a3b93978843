"""Read-only views over the ledger: filtered rows, balances, class totals, histories."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.enums import PaymentStatus
from fee_ledger.core.exceptions import NotFoundError
from fee_ledger.core.models import LedgerPayment, SchoolClass, Student, StudentFeeConcession, StudentFeePayment

from .ledger_service import ZERO, _to_decimal, ledger_row_to_response
from .schemas import (
    ClassTotalsResponse,
    ConcessionResponse,
    LedgerPaymentResponse,
    LedgerRowResponse,
    StudentBalanceResponse,
)


async def list_ledger_rows(
    db: AsyncSession,
    school_id: UUID,
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    status: Optional[PaymentStatus] = None,
    fee_category_id: Optional[UUID] = None,
    fee_type_id: Optional[UUID] = None,
    fee_type_group_id: Optional[UUID] = None,
    installment_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
) -> List[LedgerRowResponse]:
    stmt = select(StudentFeePayment).where(StudentFeePayment.school_id == school_id)
    if student_id is not None:
        stmt = stmt.where(StudentFeePayment.student_id == student_id)
    if class_id is not None:
        stmt = stmt.where(StudentFeePayment.class_id == class_id)
    if status is not None:
        stmt = stmt.where(StudentFeePayment.status == PaymentStatus(status).value)
    if fee_category_id is not None:
        stmt = stmt.where(StudentFeePayment.fee_category_id == fee_category_id)
    if fee_type_id is not None:
        stmt = stmt.where(StudentFeePayment.fee_type_id == fee_type_id)
    if fee_type_group_id is not None:
        stmt = stmt.where(StudentFeePayment.fee_type_group_id == fee_type_group_id)
    if installment_id is not None:
        stmt = stmt.where(StudentFeePayment.installment_id == installment_id)
    if academic_year_id is not None:
        stmt = stmt.where(StudentFeePayment.academic_year_id == academic_year_id)
    stmt = stmt.order_by(
        StudentFeePayment.due_date.desc().nulls_last(),
        StudentFeePayment.created_at.desc(),
    ).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return [ledger_row_to_response(row) for row in result.scalars().all()]


async def get_ledger_row(db: AsyncSession, school_id: UUID, row_id: UUID) -> LedgerRowResponse:
    row = (
        await db.execute(
            select(StudentFeePayment)
            .where(StudentFeePayment.id == row_id, StudentFeePayment.school_id == school_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not row:
        raise NotFoundError("Fee record not found")
    return ledger_row_to_response(row)


async def _ensure_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> None:
    found = (
        await db.execute(
            select(Student.id).where(Student.id == student_id, Student.school_id == school_id)
        )
    ).scalar_one_or_none()
    if not found:
        raise NotFoundError("Student not found")


async def get_student_balance(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    as_of: Optional[date] = None,
) -> StudentBalanceResponse:
    """Totals over every row of a student. A defaulter has an open row past its due date."""
    await _ensure_student(db, school_id, student_id)
    today = as_of or date.today()
    result = await db.execute(
        select(StudentFeePayment.assigned_amount, StudentFeePayment.paid_amount,
               StudentFeePayment.status, StudentFeePayment.due_date)
        .where(StudentFeePayment.school_id == school_id, StudentFeePayment.student_id == student_id)
    )
    total_assigned = ZERO
    total_paid = ZERO
    open_rows = 0
    overdue_rows = 0
    for assigned, paid, row_status, due_date in result.all():
        total_assigned += _to_decimal(assigned)
        total_paid += _to_decimal(paid)
        if row_status != PaymentStatus.paid.value:
            open_rows += 1
            if due_date is not None and due_date < today:
                overdue_rows += 1
    return StudentBalanceResponse(
        student_id=student_id,
        total_assigned=total_assigned,
        total_paid=total_paid,
        outstanding=total_assigned - total_paid,
        open_rows=open_rows,
        overdue_rows=overdue_rows,
        is_defaulter=overdue_rows > 0,
    )


async def get_class_totals(db: AsyncSession, school_id: UUID, class_id: UUID) -> ClassTotalsResponse:
    found = (
        await db.execute(
            select(SchoolClass.id).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
        )
    ).scalar_one_or_none()
    if not found:
        raise NotFoundError("Class not found")

    open_case = case((StudentFeePayment.status != PaymentStatus.paid.value, 1), else_=0)
    row = (
        await db.execute(
            select(
                func.sum(StudentFeePayment.assigned_amount),
                func.sum(StudentFeePayment.paid_amount),
                func.count(StudentFeePayment.id),
                func.count(func.distinct(StudentFeePayment.student_id)),
                func.sum(open_case),
            ).where(
                StudentFeePayment.school_id == school_id,
                StudentFeePayment.class_id == class_id,
            )
        )
    ).one()
    total_assigned = _to_decimal(row[0])
    total_paid = _to_decimal(row[1])
    return ClassTotalsResponse(
        class_id=class_id,
        total_assigned=total_assigned,
        total_paid=total_paid,
        outstanding=total_assigned - total_paid,
        row_count=row[2],
        student_count=row[3],
        pending_count=int(row[4] or 0),
    )


async def get_payment_history(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
) -> List[LedgerPaymentResponse]:
    await _ensure_student(db, school_id, student_id)
    result = await db.execute(
        select(LedgerPayment)
        .where(LedgerPayment.school_id == school_id, LedgerPayment.student_id == student_id)
        .order_by(LedgerPayment.payment_date.desc(), LedgerPayment.created_at.desc())
    )
    return [LedgerPaymentResponse.model_validate(p) for p in result.scalars().all()]


async def list_concessions(
    db: AsyncSession,
    school_id: UUID,
    student_id: Optional[UUID] = None,
    row_id: Optional[UUID] = None,
) -> List[ConcessionResponse]:
    stmt = select(StudentFeeConcession).where(StudentFeeConcession.school_id == school_id)
    if student_id is not None:
        stmt = stmt.where(StudentFeeConcession.student_id == student_id)
    if row_id is not None:
        stmt = stmt.where(StudentFeeConcession.student_fee_payment_id == row_id)
    result = await db.execute(stmt.order_by(StudentFeeConcession.created_at))
    return [ConcessionResponse.model_validate(c) for c in result.scalars().all()]


async def count_pending(db: AsyncSession, school_id: UUID, student_id: Optional[UUID] = None) -> int:
    """Open (not Paid) rows, for dashboards."""
    stmt = select(func.count()).select_from(StudentFeePayment).where(
        StudentFeePayment.school_id == school_id,
        StudentFeePayment.status != PaymentStatus.paid.value,
    )
    if student_id is not None:
        await _ensure_student(db, school_id, student_id)
        stmt = stmt.where(StudentFeePayment.student_id == student_id)
    return (await db.execute(stmt)).scalar_one()
