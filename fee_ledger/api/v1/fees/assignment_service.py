"""
Assignment service: fans one catalog selection out into ledger rows for many students.

Root references (fee type, group, installment, class, academic year) are resolved before
anything is written. Per-student problems become skips with a reason; they never abort
the batch.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.catalog import service as catalog_service
from fee_ledger.core.config import settings
from fee_ledger.core.enums import AssignmentSkipReason, FeeAuditAction
from fee_ledger.core.exceptions import NotFoundError
from fee_ledger.core.models import (
    AcademicYear,
    FeeCategory,
    FeeType,
    InstallmentPlan,
    SchoolClass,
    Student,
    StudentFeePayment,
)
from fee_ledger.core.roster import get_active_student_ids, get_school_students

from .audit_service import log_fee_audit
from .ledger_service import LEDGER_TABLE, ZERO, _to_decimal, derive_status
from .schemas import AssignFeesRequest, AssignmentResult, AssignmentSkip

logger = logging.getLogger(__name__)

# (fee_category_id, fee_type_id, fee_type_group_id, installment_id, academic_year_id)
ChargeKey = Tuple[Optional[UUID], Optional[UUID], Optional[UUID], Optional[UUID], Optional[UUID]]


@dataclass
class _Charge:
    """One ledger row to be written for one student."""

    reference_id: UUID
    fee_category_id: Optional[UUID]
    fee_type_id: Optional[UUID]
    amount: Decimal
    notes: Optional[str]


@dataclass
class _Selection:
    """Catalog side of a request, resolved once for the whole batch."""

    fee_types: Dict[UUID, FeeType]
    categories: Dict[UUID, FeeCategory]
    group_id: Optional[UUID] = None
    group_name: Optional[str] = None
    member_ids: Optional[List[UUID]] = None
    installment: Optional[InstallmentPlan] = None
    academic_year: Optional[AcademicYear] = None
    structures: Optional[Dict[UUID, Dict[UUID, Decimal]]] = None


def _chunks(items: List[UUID], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def _resolve_selection(
    db: AsyncSession,
    school_id: UUID,
    payload: AssignFeesRequest,
) -> _Selection:
    selection = _Selection(fee_types={}, categories={})
    if payload.installment_id is not None:
        selection.installment = await catalog_service.get_installment(db, school_id, payload.installment_id)
    if payload.academic_year_id is not None:
        ay = (
            await db.execute(
                select(AcademicYear).where(
                    AcademicYear.id == payload.academic_year_id,
                    AcademicYear.school_id == school_id,
                )
            )
        ).scalar_one_or_none()
        if not ay:
            raise NotFoundError("Academic year not found")
        selection.academic_year = ay

    if payload.fee_type_id is not None:
        ft = await catalog_service.get_fee_type(db, school_id, payload.fee_type_id)
        selection.fee_types = {ft.id: ft}
        selection.member_ids = [ft.id]
    elif payload.fee_type_group_id is not None:
        group = await catalog_service.get_fee_type_group(db, school_id, payload.fee_type_group_id)
        selection.group_id = group.id
        selection.group_name = group.name
        selection.member_ids = list(group.fee_type_ids)
        result = await db.execute(
            select(FeeType).where(
                FeeType.id.in_(selection.member_ids),
                FeeType.school_id == school_id,
            )
        )
        selection.fee_types = {ft.id: ft for ft in result.scalars().all()}
    else:
        result = await db.execute(
            select(FeeCategory).where(
                FeeCategory.id.in_(payload.fee_category_ids),
                FeeCategory.school_id == school_id,
            )
        )
        selection.categories = {c.id: c for c in result.scalars().all()}
    return selection


def _plan_charges(
    payload: AssignFeesRequest,
    selection: _Selection,
    student: Student,
) -> Tuple[List[_Charge], List[Tuple[UUID, AssignmentSkipReason]]]:
    """Charges for one student plus (reference_id, reason) for what could not be charged."""
    charges: List[_Charge] = []
    skips: List[Tuple[UUID, AssignmentSkipReason]] = []

    if payload.fee_category_ids is None:
        for fid in selection.member_ids or []:
            ft = selection.fee_types.get(fid)
            if ft is None:
                skips.append((fid, AssignmentSkipReason.fee_type_not_found))
                continue
            if payload.fee_type_id is not None and payload.amount is not None:
                amount = payload.amount
            else:
                amount = payload.amounts.get(fid, ft.default_amount)
            if selection.group_id is not None:
                notes = payload.notes or f"Fee for group: {selection.group_name}"
            else:
                notes = payload.notes or f"Fee for: {ft.display_name}"
            charges.append(_Charge(fid, ft.fee_category_id, ft.id, _to_decimal(amount), notes))
    else:
        structure = {}
        if selection.structures is not None and student.class_id is not None:
            structure = selection.structures.get(student.class_id, {})
        seen: Set[UUID] = set()
        for cid in payload.fee_category_ids:
            if cid in seen:
                continue
            seen.add(cid)
            category = selection.categories.get(cid)
            if category is None:
                skips.append((cid, AssignmentSkipReason.fee_category_not_found))
                continue
            if cid in payload.amounts:
                amount = payload.amounts[cid]
            elif cid in structure:
                amount = structure[cid]
            else:
                amount = category.default_amount
            notes = payload.notes or f"Fee for: {category.name}"
            charges.append(_Charge(cid, cid, None, _to_decimal(amount), notes))

    kept: List[_Charge] = []
    for charge in charges:
        if charge.amount <= ZERO:
            skips.append((charge.reference_id, AssignmentSkipReason.zero_amount))
        else:
            kept.append(charge)
    return kept, skips


async def _lock_students(db: AsyncSession, school_id: UUID, student_ids: List[UUID]) -> None:
    """
    Write-lock the chunk's students until the chunk commits; concurrent runs of the same
    assignment then read each other's rows in the duplicate check.

    No-op UPDATE: SQLite ignores FOR UPDATE but an UPDATE takes its write lock.
    """
    if not student_ids:
        return
    await db.execute(
        update(Student)
        .where(Student.id.in_(student_ids), Student.school_id == school_id)
        .values(class_id=Student.class_id)
        .execution_options(synchronize_session=False)
    )


async def _existing_keys(
    db: AsyncSession,
    school_id: UUID,
    student_ids: List[UUID],
) -> Dict[UUID, Set[ChargeKey]]:
    result = await db.execute(
        select(
            StudentFeePayment.student_id,
            StudentFeePayment.fee_category_id,
            StudentFeePayment.fee_type_id,
            StudentFeePayment.fee_type_group_id,
            StudentFeePayment.installment_id,
            StudentFeePayment.academic_year_id,
        ).where(
            StudentFeePayment.school_id == school_id,
            StudentFeePayment.student_id.in_(student_ids),
        )
    )
    keys: Dict[UUID, Set[ChargeKey]] = {}
    for student_id, *key in result.all():
        keys.setdefault(student_id, set()).add(tuple(key))
    return keys


async def assign_fees(
    db: AsyncSession,
    school_id: UUID,
    payload: AssignFeesRequest,
    actor: Optional[UUID] = None,
) -> AssignmentResult:
    """
    Create ledger rows for every target student.

    Students are written in chunks of ASSIGNMENT_CHUNK_SIZE, one transaction per chunk,
    each student inside its own savepoint. Rows identical to an existing row of the
    same student are skipped as duplicates unless allow_duplicates is set.
    """
    selection = await _resolve_selection(db, school_id, payload)

    if payload.class_id is not None:
        school_class = (
            await db.execute(
                select(SchoolClass).where(
                    SchoolClass.id == payload.class_id,
                    SchoolClass.school_id == school_id,
                )
            )
        ).scalar_one_or_none()
        if not school_class:
            raise NotFoundError("Class not found")
        if payload.assigned_group_id is not None:
            await catalog_service.get_fee_type_group(db, school_id, payload.assigned_group_id)
        target_ids = await get_active_student_ids(
            db, school_id, payload.class_id, holding_group_id=payload.assigned_group_id
        )
    else:
        target_ids = list(dict.fromkeys(payload.student_ids))

    students = await get_school_students(db, school_id, target_ids)
    if payload.fee_category_ids is not None and selection.academic_year is not None:
        selection.structures = await catalog_service.get_structure_amounts(
            db,
            school_id,
            selection.academic_year.id,
            [s.class_id for s in students.values()],
        )

    due_date = payload.due_date
    if due_date is None and selection.installment is not None:
        due_date = selection.installment.last_date

    result = AssignmentResult(created=0, skipped=0)
    for chunk in _chunks(target_ids, settings.assignment_chunk_size):
        existing = {}
        if not payload.allow_duplicates:
            known = [sid for sid in chunk if sid in students]
            await _lock_students(db, school_id, known)
            existing = await _existing_keys(db, school_id, known)
        for student_id in chunk:
            student = students.get(student_id)
            if student is None:
                result.skips.append(
                    AssignmentSkip(student_id=student_id, reason=AssignmentSkipReason.student_not_found)
                )
                continue

            charges, skips = _plan_charges(payload, selection, student)
            for reference_id, reason in skips:
                result.skips.append(
                    AssignmentSkip(student_id=student_id, reference_id=reference_id, reason=reason)
                )

            rows: List[StudentFeePayment] = []
            seen = existing.setdefault(student_id, set())
            for charge in charges:
                key: ChargeKey = (
                    charge.fee_category_id,
                    charge.fee_type_id,
                    selection.group_id,
                    payload.installment_id,
                    payload.academic_year_id,
                )
                if not payload.allow_duplicates and key in seen:
                    result.skips.append(
                        AssignmentSkip(
                            student_id=student_id,
                            reference_id=charge.reference_id,
                            reason=AssignmentSkipReason.duplicate,
                        )
                    )
                    continue
                seen.add(key)
                rows.append(
                    StudentFeePayment(
                        id=uuid.uuid4(),
                        school_id=school_id,
                        student_id=student_id,
                        fee_category_id=charge.fee_category_id,
                        fee_type_id=charge.fee_type_id,
                        fee_type_group_id=selection.group_id,
                        installment_id=payload.installment_id,
                        class_id=student.class_id,
                        academic_year_id=payload.academic_year_id,
                        assigned_amount=charge.amount,
                        paid_amount=ZERO,
                        status=derive_status(charge.amount, ZERO).value,
                        due_date=due_date,
                        notes=charge.notes,
                    )
                )
            if not rows:
                continue

            try:
                async with db.begin_nested():
                    db.add_all(rows)
                    for row in rows:
                        await log_fee_audit(
                            db,
                            school_id=school_id,
                            reference_table=LEDGER_TABLE,
                            reference_id=row.id,
                            action_type=FeeAuditAction.CREATE.value,
                            old_value=None,
                            new_value={
                                "student_id": student_id,
                                "assigned_amount": row.assigned_amount,
                                "status": row.status,
                                "due_date": row.due_date,
                            },
                            changed_by=actor,
                        )
            except (IntegrityError, DataError):
                logger.exception("Could not assign fees to student %s", student_id)
                for row in rows:
                    result.skips.append(
                        AssignmentSkip(
                            student_id=student_id,
                            reference_id=row.fee_type_id or row.fee_category_id,
                            reason=AssignmentSkipReason.error,
                        )
                    )
                continue
            result.created += len(rows)
            result.row_ids.extend(row.id for row in rows)
        await db.commit()

    result.skipped = len(result.skips)
    logger.info(
        "Fee assignment for school %s: %d target student(s), %d row(s) created, %d skipped",
        school_id, len(target_ids), result.created, result.skipped,
    )
    return result
