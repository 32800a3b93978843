"""
Ledger engine: the only code that mutates a StudentFeePayment after creation.

Every mutation loads the row fresh (FOR UPDATE where the dialect has it) and writes
it back as a compare-and-swap on the version column, so two writers can never both
apply a change computed from the same old amounts.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from fee_ledger.api.v1.catalog.service import get_concession_type, resolve_payment_method
from fee_ledger.core.amounts import CENT, amount_problem
from fee_ledger.core.enums import FeeAuditAction, PaymentStatus
from fee_ledger.core.exceptions import (
    ConcurrencyConflictError,
    ExceedsDueError,
    HasPaymentsError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from fee_ledger.core.models import LedgerPayment, StudentFeeConcession, StudentFeePayment

from .audit_service import log_fee_audit
from .schemas import (
    ConcessionCreate,
    ConcessionResponse,
    ConcessionResult,
    EditAssignmentRequest,
    LedgerPaymentResponse,
    LedgerRowResponse,
    PaymentCreate,
    PaymentResult,
)

logger = logging.getLogger(__name__)

LEDGER_TABLE = "student_fee_payments"
ZERO = Decimal("0")


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value.quantize(CENT)
    return Decimal(str(value)).quantize(CENT)


def _checked_amount(value: Decimal) -> Decimal:
    problem = amount_problem(value)
    if problem:
        raise InvalidAmountError(problem)
    return value.quantize(CENT)


def derive_status(assigned_amount: Any, paid_amount: Any) -> PaymentStatus:
    """Status is a pure function of the two amounts. (0, 0) means nothing is owed: Paid."""
    assigned = _to_decimal(assigned_amount)
    paid = _to_decimal(paid_amount)
    if paid >= assigned:
        return PaymentStatus.paid
    if paid > ZERO:
        return PaymentStatus.partially_paid
    return PaymentStatus.pending


def ledger_row_to_response(row: StudentFeePayment) -> LedgerRowResponse:
    assigned = _to_decimal(row.assigned_amount)
    paid = _to_decimal(row.paid_amount)
    return LedgerRowResponse(
        id=row.id,
        school_id=row.school_id,
        student_id=row.student_id,
        fee_category_id=row.fee_category_id,
        fee_type_id=row.fee_type_id,
        fee_type_group_id=row.fee_type_group_id,
        installment_id=row.installment_id,
        class_id=row.class_id,
        academic_year_id=row.academic_year_id,
        assigned_amount=assigned,
        paid_amount=paid,
        outstanding_amount=assigned - paid,
        status=PaymentStatus(row.status),
        due_date=row.due_date,
        payment_date=row.payment_date,
        payment_mode=row.payment_mode,
        notes=row.notes,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _snapshot(row: StudentFeePayment) -> dict:
    return {
        "assigned_amount": row.assigned_amount,
        "paid_amount": row.paid_amount,
        "status": row.status,
        "due_date": row.due_date,
        "version": row.version,
    }


async def _load_row(db: AsyncSession, school_id: UUID, row_id: UUID) -> StudentFeePayment:
    row = (
        await db.execute(
            select(StudentFeePayment)
            .where(StudentFeePayment.id == row_id, StudentFeePayment.school_id == school_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not row:
        raise NotFoundError("Fee record not found")
    return row


async def _commit(db: AsyncSession, row_id: UUID) -> None:
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.info("Concurrent modification of fee record %s; caller must retry", row_id)
        raise ConcurrencyConflictError("Fee record was modified concurrently. Reload and retry.")


# --- Payment ---
async def record_payment(
    db: AsyncSession,
    school_id: UUID,
    row_id: UUID,
    payload: PaymentCreate,
    actor: Optional[UUID] = None,
) -> PaymentResult:
    """Apply a payment; the part above the outstanding balance is clamped and reported."""
    requested = _checked_amount(payload.amount)
    if requested <= ZERO:
        raise InvalidAmountError("Payment amount must be greater than zero")

    payment_mode = None
    if payload.payment_mode and payload.payment_mode.strip():
        payment_mode = (await resolve_payment_method(db, school_id, payload.payment_mode)).name

    row = await _load_row(db, school_id, row_id)
    assigned = _to_decimal(row.assigned_amount)
    paid = _to_decimal(row.paid_amount)
    due = assigned - paid
    if due <= ZERO:
        raise InvalidAmountError("Nothing is due on this fee record")

    applied = min(requested, due)
    clamped = requested - applied
    old = _snapshot(row)
    payment_date = payload.payment_date or date.today()

    row.paid_amount = paid + applied
    row.status = derive_status(assigned, row.paid_amount).value
    row.payment_date = payment_date
    row.payment_mode = payment_mode
    if payload.note:
        row.notes = f"{row.notes}\n{payload.note}" if row.notes else payload.note

    payment = LedgerPayment(
        school_id=school_id,
        student_fee_payment_id=row.id,
        student_id=row.student_id,
        requested_amount=requested,
        applied_amount=applied,
        payment_date=payment_date,
        payment_mode=payment_mode,
        note=payload.note,
        recorded_by=actor,
    )
    db.add(payment)
    await log_fee_audit(
        db,
        school_id=school_id,
        reference_table=LEDGER_TABLE,
        reference_id=row.id,
        action_type=FeeAuditAction.PAYMENT.value,
        old_value=old,
        new_value={**_snapshot(row), "requested_amount": requested, "applied_amount": applied},
        changed_by=actor,
    )
    await _commit(db, row_id)
    await db.refresh(payment)

    if clamped > ZERO:
        logger.warning(
            "Payment of %s on fee record %s clamped to %s (excess %s)",
            requested, row.id, applied, clamped,
        )
    return PaymentResult(
        row=ledger_row_to_response(row),
        payment=LedgerPaymentResponse.model_validate(payment),
        applied_amount=applied,
        clamped_amount=clamped,
    )


# --- Concession ---
async def apply_concession(
    db: AsyncSession,
    school_id: UUID,
    row_id: UUID,
    payload: ConcessionCreate,
    actor: Optional[UUID] = None,
) -> ConcessionResult:
    """Reduce the assigned amount by a discount; never touches the paid amount."""
    amount = _checked_amount(payload.amount)
    if amount <= ZERO:
        raise InvalidAmountError("Concession amount must be greater than zero")
    await get_concession_type(db, school_id, payload.concession_type_id)

    row = await _load_row(db, school_id, row_id)
    assigned = _to_decimal(row.assigned_amount)
    paid = _to_decimal(row.paid_amount)
    due = assigned - paid
    if amount > due:
        raise ExceedsDueError(f"Concession {amount} exceeds the due balance {due}")

    old = _snapshot(row)
    row.assigned_amount = assigned - amount
    row.status = derive_status(row.assigned_amount, paid).value

    concession = StudentFeeConcession(
        school_id=school_id,
        student_fee_payment_id=row.id,
        student_id=row.student_id,
        concession_type_id=payload.concession_type_id,
        amount=amount,
        remarks=(payload.remarks or "").strip() or None,
        applied_by=actor,
    )
    db.add(concession)
    await log_fee_audit(
        db,
        school_id=school_id,
        reference_table=LEDGER_TABLE,
        reference_id=row.id,
        action_type=FeeAuditAction.CONCESSION.value,
        old_value=old,
        new_value={**_snapshot(row), "concession_amount": amount},
        changed_by=actor,
    )
    await _commit(db, row_id)
    await db.refresh(concession)
    return ConcessionResult(
        row=ledger_row_to_response(row),
        concession=ConcessionResponse.model_validate(concession),
    )


async def reverse_concession(
    db: AsyncSession,
    school_id: UUID,
    concession_id: UUID,
    actor: Optional[UUID] = None,
) -> ConcessionResult:
    """Undo a concession with a negative record; the original stays untouched."""
    original = (
        await db.execute(
            select(StudentFeeConcession).where(
                StudentFeeConcession.id == concession_id,
                StudentFeeConcession.school_id == school_id,
            )
        )
    ).scalar_one_or_none()
    if not original:
        raise NotFoundError("Concession not found")
    if original.reversal_of_id is not None:
        raise ValidationError("A reversal entry cannot itself be reversed")
    already = (
        await db.execute(
            select(func.count())
            .select_from(StudentFeeConcession)
            .where(StudentFeeConcession.reversal_of_id == original.id)
        )
    ).scalar_one()
    if already:
        raise ValidationError("Concession has already been reversed")

    row = await _load_row(db, school_id, original.student_fee_payment_id)
    amount = _to_decimal(original.amount)
    old = _snapshot(row)
    was_paid = row.status == PaymentStatus.paid.value
    row.assigned_amount = _to_decimal(row.assigned_amount) + amount
    row.status = derive_status(row.assigned_amount, row.paid_amount).value

    reversal = StudentFeeConcession(
        school_id=school_id,
        student_fee_payment_id=row.id,
        student_id=row.student_id,
        concession_type_id=original.concession_type_id,
        amount=-amount,
        remarks=f"Reversal of concession {original.id}",
        applied_by=actor,
        reversal_of_id=original.id,
    )
    db.add(reversal)
    await log_fee_audit(
        db,
        school_id=school_id,
        reference_table=LEDGER_TABLE,
        reference_id=row.id,
        action_type=FeeAuditAction.CONCESSION_REVERSAL.value,
        old_value=old,
        new_value={**_snapshot(row), "reversed_concession_id": original.id},
        changed_by=actor,
    )
    reopened = was_paid and row.status != PaymentStatus.paid.value
    if reopened:
        await log_fee_audit(
            db,
            school_id=school_id,
            reference_table=LEDGER_TABLE,
            reference_id=row.id,
            action_type=FeeAuditAction.REOPEN.value,
            old_value=old,
            new_value=_snapshot(row),
            changed_by=actor,
        )
    try:
        await _commit(db, row.id)
    except IntegrityError:
        await db.rollback()
        raise ValidationError("Concession has already been reversed", status.HTTP_409_CONFLICT)
    await db.refresh(reversal)
    if reopened:
        logger.warning("Fee record %s re-opened by reversal of concession %s", row.id, original.id)
    return ConcessionResult(
        row=ledger_row_to_response(row),
        concession=ConcessionResponse.model_validate(reversal),
    )


# --- Administrative edit / delete ---
async def edit_assignment(
    db: AsyncSession,
    school_id: UUID,
    row_id: UUID,
    payload: EditAssignmentRequest,
    actor: Optional[UUID] = None,
) -> LedgerRowResponse:
    """Correct amount, due date or notes. Fails rather than clamping below what was paid."""
    row = await _load_row(db, school_id, row_id)
    old = _snapshot(row)
    was_paid = row.status == PaymentStatus.paid.value

    if payload.assigned_amount is not None:
        new_assigned = _checked_amount(payload.assigned_amount)
        paid = _to_decimal(row.paid_amount)
        if new_assigned < ZERO:
            raise InvalidAmountError("Assigned amount cannot be negative")
        if new_assigned < paid:
            raise InvalidAmountError(
                f"Assigned amount {new_assigned} is below the amount already paid ({paid})"
            )
        row.assigned_amount = new_assigned
        row.status = derive_status(new_assigned, paid).value
    if payload.due_date is not None:
        row.due_date = payload.due_date
    if payload.notes is not None:
        row.notes = payload.notes.strip() or None

    reopened = was_paid and row.status != PaymentStatus.paid.value
    await log_fee_audit(
        db,
        school_id=school_id,
        reference_table=LEDGER_TABLE,
        reference_id=row.id,
        action_type=(FeeAuditAction.REOPEN if reopened else FeeAuditAction.UPDATE).value,
        old_value=old,
        new_value=_snapshot(row),
        changed_by=actor,
    )
    await _commit(db, row_id)
    if reopened:
        logger.warning(
            "Fee record %s re-opened: assigned %s -> %s with %s paid",
            row.id, old["assigned_amount"], row.assigned_amount, row.paid_amount,
        )
    return ledger_row_to_response(row)


async def delete_assignment(
    db: AsyncSession,
    school_id: UUID,
    row_id: UUID,
    actor: Optional[UUID] = None,
) -> None:
    row = await _load_row(db, school_id, row_id)
    if _to_decimal(row.paid_amount) > ZERO:
        raise HasPaymentsError("Cannot delete a fee record with recorded payments")
    concessions = (
        await db.execute(
            select(func.count())
            .select_from(StudentFeeConcession)
            .where(StudentFeeConcession.student_fee_payment_id == row.id)
        )
    ).scalar_one()
    if concessions:
        raise HasPaymentsError(
            f"Cannot delete a fee record with {concessions} recorded concession(s)"
        )

    await log_fee_audit(
        db,
        school_id=school_id,
        reference_table=LEDGER_TABLE,
        reference_id=row.id,
        action_type=FeeAuditAction.DELETE.value,
        old_value={**_snapshot(row), "student_id": row.student_id},
        new_value=None,
        changed_by=actor,
    )
    await db.delete(row)
    await _commit(db, row_id)
    logger.info("Deleted fee record %s for school %s", row_id, school_id)
