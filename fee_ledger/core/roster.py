"""Roster provider: which students a class or an explicit id list resolves to within a school."""

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.models import Student, StudentFeePayment


async def get_active_student_ids(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    holding_group_id: Optional[UUID] = None,
) -> List[UUID]:
    """
    Point-in-time snapshot of the active students of a class.

    With holding_group_id, only the students that already carry a fee record of that
    fee type group.
    """
    stmt = select(Student.id).where(
        Student.school_id == school_id,
        Student.class_id == class_id,
        Student.is_active.is_(True),
    )
    if holding_group_id is not None:
        stmt = stmt.where(
            select(StudentFeePayment.id)
            .where(
                StudentFeePayment.student_id == Student.id,
                StudentFeePayment.school_id == school_id,
                StudentFeePayment.fee_type_group_id == holding_group_id,
            )
            .exists()
        )
    result = await db.execute(stmt.order_by(Student.name, Student.id))
    return list(result.scalars().all())


async def get_school_students(
    db: AsyncSession,
    school_id: UUID,
    student_ids: Iterable[UUID],
) -> Dict[UUID, Student]:
    """Active students of this school among student_ids. Ids from other schools are simply absent."""
    ids = list(set(student_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(Student).where(
            Student.id.in_(ids),
            Student.school_id == school_id,
            Student.is_active.is_(True),
        )
    )
    return {s.id: s for s in result.scalars().all()}
