"""Fee catalog service: categories, fee types, groups, installments, concession types,
payment methods, fee structures.

Deletes never cascade into financial history: each one counts live references first
and refuses with the count.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.enums import FeeInstallmentType
from fee_ledger.core.exceptions import NotFoundError, ReferentialIntegrityError, ValidationError
from fee_ledger.core.models import (
    AcademicYear,
    ConcessionType,
    FeeCategory,
    FeeStructure,
    FeeStructureItem,
    FeeType,
    FeeTypeGroup,
    FeeTypeGroupItem,
    InstallmentPlan,
    LedgerPayment,
    PaymentMethod,
    SchoolClass,
    StudentFeeConcession,
    StudentFeePayment,
)

from .schemas import (
    ConcessionTypeCreate,
    ConcessionTypeResponse,
    ConcessionTypeUpdate,
    FeeCategoryCreate,
    FeeCategoryResponse,
    FeeCategoryUpdate,
    FeeStructureResponse,
    FeeStructureSave,
    FeeTypeCreate,
    FeeTypeGroupCreate,
    FeeTypeGroupResponse,
    FeeTypeGroupUpdate,
    FeeTypeResponse,
    FeeTypeUpdate,
    InstallmentPlanCreate,
    InstallmentPlanResponse,
    InstallmentPlanUpdate,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentMethodUpdate,
)

logger = logging.getLogger(__name__)


def _clean_name(value: Optional[str], label: str) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError(f"{label} is required")
    return name


def _clean_text(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


async def _count(db: AsyncSession, model, *criteria) -> int:
    return (
        await db.execute(select(func.count()).select_from(model).where(*criteria))
    ).scalar_one()


async def _ensure_unique(
    db: AsyncSession,
    model,
    column,
    school_id: UUID,
    value: str,
    message: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    criteria = [model.school_id == school_id, func.lower(column) == value.lower()]
    if exclude_id is not None:
        criteria.append(model.id != exclude_id)
    if await _count(db, model, *criteria):
        raise ValidationError(message, status.HTTP_409_CONFLICT)


async def _get_scoped(db: AsyncSession, model, school_id: UUID, entity_id: UUID, label: str):
    entity = (
        await db.execute(
            select(model).where(model.id == entity_id, model.school_id == school_id)
        )
    ).scalar_one_or_none()
    if not entity:
        raise NotFoundError(f"{label} not found")
    return entity


async def _commit(db: AsyncSession, conflict_message: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError(conflict_message, status.HTTP_409_CONFLICT)


def _blocked(label: str, count: int, where: str) -> ReferentialIntegrityError:
    return ReferentialIntegrityError(
        f"Cannot delete: this {label} is used in {count} {where}.", count
    )


# --- Fee Category ---
async def create_fee_category(
    db: AsyncSession,
    school_id: UUID,
    payload: FeeCategoryCreate,
) -> FeeCategoryResponse:
    name = _clean_name(payload.name, "Category name")
    await _ensure_unique(
        db, FeeCategory, FeeCategory.name, school_id, name,
        f'A fee category named "{name}" already exists.',
    )
    fc = FeeCategory(
        school_id=school_id,
        name=name,
        description=_clean_text(payload.description),
        default_amount=payload.default_amount,
    )
    db.add(fc)
    await _commit(db, f'A fee category named "{name}" already exists.')
    await db.refresh(fc)
    logger.info("Created fee category %s (%s) for school %s", fc.name, fc.id, school_id)
    return FeeCategoryResponse.model_validate(fc)


async def list_fee_categories(db: AsyncSession, school_id: UUID) -> List[FeeCategoryResponse]:
    result = await db.execute(
        select(FeeCategory).where(FeeCategory.school_id == school_id).order_by(FeeCategory.name)
    )
    return [FeeCategoryResponse.model_validate(fc) for fc in result.scalars().all()]


async def get_fee_category(db: AsyncSession, school_id: UUID, category_id: UUID) -> FeeCategory:
    return await _get_scoped(db, FeeCategory, school_id, category_id, "Fee category")


async def update_fee_category(
    db: AsyncSession,
    school_id: UUID,
    category_id: UUID,
    payload: FeeCategoryUpdate,
) -> FeeCategoryResponse:
    fc = await get_fee_category(db, school_id, category_id)
    if payload.name is not None:
        name = _clean_name(payload.name, "Category name")
        await _ensure_unique(
            db, FeeCategory, FeeCategory.name, school_id, name,
            f'A fee category named "{name}" already exists.',
            exclude_id=fc.id,
        )
        fc.name = name
    if payload.description is not None:
        fc.description = _clean_text(payload.description)
    if payload.default_amount is not None:
        fc.default_amount = payload.default_amount
    await _commit(db, "Fee category update conflict")
    await db.refresh(fc)
    return FeeCategoryResponse.model_validate(fc)


async def delete_fee_category(db: AsyncSession, school_id: UUID, category_id: UUID) -> None:
    fc = await get_fee_category(db, school_id, category_id)
    rows = await _count(db, StudentFeePayment, StudentFeePayment.fee_category_id == fc.id)
    if rows:
        raise _blocked("category", rows, "fee record(s)")
    types = await _count(db, FeeType, FeeType.fee_category_id == fc.id)
    if types:
        raise _blocked("category", types, "fee type(s)")
    items = await _count(db, FeeStructureItem, FeeStructureItem.fee_category_id == fc.id)
    if items:
        raise _blocked("category", items, "fee structure(s)")
    await db.delete(fc)
    await db.commit()
    logger.info("Deleted fee category %s for school %s", category_id, school_id)


# --- Fee Type ---
async def create_fee_type(
    db: AsyncSession,
    school_id: UUID,
    payload: FeeTypeCreate,
) -> FeeTypeResponse:
    name = _clean_name(payload.name, "Fee type name").upper()
    display_name = _clean_name(payload.display_name, "Display name")
    await get_fee_category(db, school_id, payload.fee_category_id)
    await _ensure_unique(
        db, FeeType, FeeType.name, school_id, name,
        f'A fee type with the name "{name}" already exists.',
    )
    ft = FeeType(
        school_id=school_id,
        name=name,
        display_name=display_name,
        description=_clean_text(payload.description),
        fee_category_id=payload.fee_category_id,
        installment_type=FeeInstallmentType(payload.installment_type).value,
        is_refundable=payload.is_refundable,
        default_amount=payload.default_amount,
    )
    db.add(ft)
    await _commit(db, f'A fee type with the name "{name}" already exists.')
    await db.refresh(ft)
    logger.info("Created fee type %s (%s) for school %s", ft.name, ft.id, school_id)
    return FeeTypeResponse.model_validate(ft)


async def list_fee_types(
    db: AsyncSession,
    school_id: UUID,
    installment_type: Optional[FeeInstallmentType] = None,
) -> List[FeeTypeResponse]:
    stmt = select(FeeType).where(FeeType.school_id == school_id)
    if installment_type is not None:
        stmt = stmt.where(FeeType.installment_type == FeeInstallmentType(installment_type).value)
    result = await db.execute(stmt.order_by(FeeType.name))
    return [FeeTypeResponse.model_validate(ft) for ft in result.scalars().all()]


async def get_fee_type(db: AsyncSession, school_id: UUID, fee_type_id: UUID) -> FeeType:
    return await _get_scoped(db, FeeType, school_id, fee_type_id, "Fee type")


async def update_fee_type(
    db: AsyncSession,
    school_id: UUID,
    fee_type_id: UUID,
    payload: FeeTypeUpdate,
) -> FeeTypeResponse:
    ft = await get_fee_type(db, school_id, fee_type_id)
    name = display_name = None
    if payload.name is not None:
        name = _clean_name(payload.name, "Fee type name").upper()
        await _ensure_unique(
            db, FeeType, FeeType.name, school_id, name,
            f'Another fee type with the name "{name}" already exists.',
            exclude_id=ft.id,
        )
    if payload.display_name is not None:
        display_name = _clean_name(payload.display_name, "Display name")
    if payload.fee_category_id is not None:
        await get_fee_category(db, school_id, payload.fee_category_id)

    if name is not None:
        ft.name = name
    if display_name is not None:
        ft.display_name = display_name
    if payload.description is not None:
        ft.description = _clean_text(payload.description)
    if payload.fee_category_id is not None:
        ft.fee_category_id = payload.fee_category_id
    if payload.installment_type is not None:
        ft.installment_type = FeeInstallmentType(payload.installment_type).value
    if payload.is_refundable is not None:
        ft.is_refundable = payload.is_refundable
    if payload.default_amount is not None:
        ft.default_amount = payload.default_amount
    await _commit(db, "Fee type update conflict")
    await db.refresh(ft)
    return FeeTypeResponse.model_validate(ft)


async def delete_fee_type(db: AsyncSession, school_id: UUID, fee_type_id: UUID) -> None:
    ft = await get_fee_type(db, school_id, fee_type_id)
    rows = await _count(db, StudentFeePayment, StudentFeePayment.fee_type_id == ft.id)
    if rows:
        raise _blocked("fee type", rows, "student fee record(s)")
    memberships = await _count(db, FeeTypeGroupItem, FeeTypeGroupItem.fee_type_id == ft.id)
    if memberships:
        raise _blocked("fee type", memberships, "fee type group(s)")
    await db.delete(ft)
    await db.commit()
    logger.info("Deleted fee type %s for school %s", fee_type_id, school_id)


# --- Fee Type Group ---
async def _resolve_group_members(
    db: AsyncSession,
    school_id: UUID,
    fee_type_ids: Iterable[UUID],
) -> List[UUID]:
    ordered: List[UUID] = []
    for fid in fee_type_ids:
        if fid not in ordered:
            ordered.append(fid)
    if not ordered:
        raise ValidationError("A fee type group needs at least one fee type")
    found = set(
        (
            await db.execute(
                select(FeeType.id).where(FeeType.id.in_(ordered), FeeType.school_id == school_id)
            )
        ).scalars().all()
    )
    missing = [str(fid) for fid in ordered if fid not in found]
    if missing:
        raise ValidationError(f"Unknown fee type(s): {', '.join(missing)}")
    return ordered


async def _load_group(db: AsyncSession, school_id: UUID, group_id: UUID) -> FeeTypeGroup:
    group = (
        await db.execute(
            select(FeeTypeGroup)
            .where(FeeTypeGroup.id == group_id, FeeTypeGroup.school_id == school_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not group:
        raise NotFoundError("Fee type group not found")
    return group


async def create_fee_type_group(
    db: AsyncSession,
    school_id: UUID,
    payload: FeeTypeGroupCreate,
) -> FeeTypeGroupResponse:
    name = _clean_name(payload.name, "Group name")
    members = await _resolve_group_members(db, school_id, payload.fee_type_ids)
    await _ensure_unique(
        db, FeeTypeGroup, FeeTypeGroup.name, school_id, name,
        f'A fee type group named "{name}" already exists.',
    )
    group = FeeTypeGroup(
        school_id=school_id,
        name=name,
        items=[FeeTypeGroupItem(fee_type_id=fid, position=i) for i, fid in enumerate(members)],
    )
    db.add(group)
    await _commit(db, f'A fee type group named "{name}" already exists.')
    group = await _load_group(db, school_id, group.id)
    logger.info("Created fee type group %s with %d fee type(s)", group.id, len(members))
    return FeeTypeGroupResponse.model_validate(group)


async def list_fee_type_groups(db: AsyncSession, school_id: UUID) -> List[FeeTypeGroupResponse]:
    result = await db.execute(
        select(FeeTypeGroup).where(FeeTypeGroup.school_id == school_id).order_by(FeeTypeGroup.name)
    )
    return [FeeTypeGroupResponse.model_validate(g) for g in result.scalars().all()]


async def get_fee_type_group(db: AsyncSession, school_id: UUID, group_id: UUID) -> FeeTypeGroup:
    return await _load_group(db, school_id, group_id)


async def update_fee_type_group(
    db: AsyncSession,
    school_id: UUID,
    group_id: UUID,
    payload: FeeTypeGroupUpdate,
) -> FeeTypeGroupResponse:
    group = await _load_group(db, school_id, group_id)
    name = members = None
    if payload.name is not None:
        name = _clean_name(payload.name, "Group name")
        await _ensure_unique(
            db, FeeTypeGroup, FeeTypeGroup.name, school_id, name,
            f'A fee type group named "{name}" already exists.',
            exclude_id=group.id,
        )
    if payload.fee_type_ids is not None:
        members = await _resolve_group_members(db, school_id, payload.fee_type_ids)

    if name is not None:
        group.name = name
    if members is not None:
        existing = {item.fee_type_id: item for item in group.items}
        for item in list(group.items):
            if item.fee_type_id not in members:
                group.items.remove(item)
        for position, fid in enumerate(members):
            if fid in existing:
                existing[fid].position = position
            else:
                group.items.append(FeeTypeGroupItem(fee_type_id=fid, position=position))
    await _commit(db, "Fee type group update conflict")
    group = await _load_group(db, school_id, group_id)
    return FeeTypeGroupResponse.model_validate(group)


async def delete_fee_type_group(db: AsyncSession, school_id: UUID, group_id: UUID) -> None:
    group = await _load_group(db, school_id, group_id)
    rows = await _count(db, StudentFeePayment, StudentFeePayment.fee_type_group_id == group.id)
    if rows:
        raise _blocked("group", rows, "fee record(s)")
    await db.delete(group)
    await db.commit()
    logger.info("Deleted fee type group %s for school %s", group_id, school_id)


# --- Installment Plan ---
async def create_installment(
    db: AsyncSession,
    school_id: UUID,
    payload: InstallmentPlanCreate,
) -> InstallmentPlanResponse:
    title = _clean_name(payload.title, "Installment title")
    await _ensure_unique(
        db, InstallmentPlan, InstallmentPlan.title, school_id, title,
        f'An installment with the title "{title}" already exists for this school.',
    )
    plan = InstallmentPlan(
        school_id=school_id,
        title=title,
        start_date=payload.start_date,
        end_date=payload.end_date,
        last_date=payload.last_date,
        description=_clean_text(payload.description),
    )
    db.add(plan)
    await _commit(db, f'An installment with the title "{title}" already exists for this school.')
    await db.refresh(plan)
    logger.info("Created installment %s (%s) for school %s", plan.title, plan.id, school_id)
    return InstallmentPlanResponse.model_validate(plan)


async def list_installments(db: AsyncSession, school_id: UUID) -> List[InstallmentPlanResponse]:
    result = await db.execute(
        select(InstallmentPlan)
        .where(InstallmentPlan.school_id == school_id)
        .order_by(InstallmentPlan.start_date.desc())
    )
    return [InstallmentPlanResponse.model_validate(p) for p in result.scalars().all()]


async def get_installment(db: AsyncSession, school_id: UUID, installment_id: UUID) -> InstallmentPlan:
    return await _get_scoped(db, InstallmentPlan, school_id, installment_id, "Installment")


async def update_installment(
    db: AsyncSession,
    school_id: UUID,
    installment_id: UUID,
    payload: InstallmentPlanUpdate,
) -> InstallmentPlanResponse:
    plan = await get_installment(db, school_id, installment_id)
    title = None
    if payload.title is not None:
        title = _clean_name(payload.title, "Installment title")
        await _ensure_unique(
            db, InstallmentPlan, InstallmentPlan.title, school_id, title,
            f'Another installment with the title "{title}" already exists.',
            exclude_id=plan.id,
        )
    start_date = payload.start_date or plan.start_date
    end_date = payload.end_date or plan.end_date
    last_date = payload.last_date or plan.last_date
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    if last_date < start_date:
        raise ValidationError("last_date cannot be before start_date")

    if title is not None:
        plan.title = title
    plan.start_date, plan.end_date, plan.last_date = start_date, end_date, last_date
    if payload.description is not None:
        plan.description = _clean_text(payload.description)
    await _commit(db, "Installment update conflict")
    await db.refresh(plan)
    return InstallmentPlanResponse.model_validate(plan)


async def delete_installment(db: AsyncSession, school_id: UUID, installment_id: UUID) -> None:
    plan = await get_installment(db, school_id, installment_id)
    rows = await _count(db, StudentFeePayment, StudentFeePayment.installment_id == plan.id)
    if rows:
        raise _blocked("installment", rows, "fee record(s)")
    await db.delete(plan)
    await db.commit()
    logger.info("Deleted installment %s for school %s", installment_id, school_id)


# --- Concession Type ---
async def create_concession_type(
    db: AsyncSession,
    school_id: UUID,
    payload: ConcessionTypeCreate,
) -> ConcessionTypeResponse:
    title = _clean_name(payload.title, "Concession title")
    await _ensure_unique(
        db, ConcessionType, ConcessionType.title, school_id, title,
        f'A concession titled "{title}" already exists.',
    )
    ct = ConcessionType(school_id=school_id, title=title, description=_clean_text(payload.description))
    db.add(ct)
    await _commit(db, f'A concession titled "{title}" already exists.')
    await db.refresh(ct)
    logger.info("Created concession type %s (%s) for school %s", ct.title, ct.id, school_id)
    return ConcessionTypeResponse.model_validate(ct)


async def list_concession_types(db: AsyncSession, school_id: UUID) -> List[ConcessionTypeResponse]:
    result = await db.execute(
        select(ConcessionType).where(ConcessionType.school_id == school_id).order_by(ConcessionType.title)
    )
    return [ConcessionTypeResponse.model_validate(ct) for ct in result.scalars().all()]


async def get_concession_type(db: AsyncSession, school_id: UUID, concession_type_id: UUID) -> ConcessionType:
    return await _get_scoped(db, ConcessionType, school_id, concession_type_id, "Concession type")


async def update_concession_type(
    db: AsyncSession,
    school_id: UUID,
    concession_type_id: UUID,
    payload: ConcessionTypeUpdate,
) -> ConcessionTypeResponse:
    ct = await get_concession_type(db, school_id, concession_type_id)
    if payload.title is not None:
        title = _clean_name(payload.title, "Concession title")
        await _ensure_unique(
            db, ConcessionType, ConcessionType.title, school_id, title,
            f'A concession titled "{title}" already exists.',
            exclude_id=ct.id,
        )
        ct.title = title
    if payload.description is not None:
        ct.description = _clean_text(payload.description)
    await _commit(db, "Concession type update conflict")
    await db.refresh(ct)
    return ConcessionTypeResponse.model_validate(ct)


async def delete_concession_type(db: AsyncSession, school_id: UUID, concession_type_id: UUID) -> None:
    ct = await get_concession_type(db, school_id, concession_type_id)
    applied = await _count(db, StudentFeeConcession, StudentFeeConcession.concession_type_id == ct.id)
    if applied:
        raise _blocked("concession", applied, "fee record(s)")
    await db.delete(ct)
    await db.commit()
    logger.info("Deleted concession type %s for school %s", concession_type_id, school_id)


# --- Payment Method ---
async def _payments_using(db: AsyncSession, school_id: UUID, name: str) -> int:
    return await _count(
        db,
        LedgerPayment,
        LedgerPayment.school_id == school_id,
        func.lower(LedgerPayment.payment_mode) == name.lower(),
    )


async def create_payment_method(
    db: AsyncSession,
    school_id: UUID,
    payload: PaymentMethodCreate,
) -> PaymentMethodResponse:
    name = _clean_name(payload.name, "Payment method name")
    await _ensure_unique(
        db, PaymentMethod, PaymentMethod.name, school_id, name,
        f'A payment method named "{name}" already exists.',
    )
    pm = PaymentMethod(school_id=school_id, name=name, description=_clean_text(payload.description))
    db.add(pm)
    await _commit(db, f'A payment method named "{name}" already exists.')
    await db.refresh(pm)
    logger.info("Created payment method %s (%s) for school %s", pm.name, pm.id, school_id)
    return PaymentMethodResponse.model_validate(pm)


async def list_payment_methods(db: AsyncSession, school_id: UUID) -> List[PaymentMethodResponse]:
    result = await db.execute(
        select(PaymentMethod).where(PaymentMethod.school_id == school_id).order_by(PaymentMethod.name)
    )
    return [PaymentMethodResponse.model_validate(pm) for pm in result.scalars().all()]


async def get_payment_method(db: AsyncSession, school_id: UUID, payment_method_id: UUID) -> PaymentMethod:
    return await _get_scoped(db, PaymentMethod, school_id, payment_method_id, "Payment method")


async def resolve_payment_method(db: AsyncSession, school_id: UUID, name: str) -> PaymentMethod:
    """Case-insensitive lookup by name; payments record the method's canonical name."""
    pm = (
        await db.execute(
            select(PaymentMethod).where(
                PaymentMethod.school_id == school_id,
                func.lower(PaymentMethod.name) == name.strip().lower(),
            )
        )
    ).scalar_one_or_none()
    if not pm:
        raise ValidationError(f'Unknown payment method "{name.strip()}"')
    return pm


async def update_payment_method(
    db: AsyncSession,
    school_id: UUID,
    payment_method_id: UUID,
    payload: PaymentMethodUpdate,
) -> PaymentMethodResponse:
    pm = await get_payment_method(db, school_id, payment_method_id)
    name = None
    if payload.name is not None:
        name = _clean_name(payload.name, "Payment method name")
        await _ensure_unique(
            db, PaymentMethod, PaymentMethod.name, school_id, name,
            f'A payment method named "{name}" already exists.',
            exclude_id=pm.id,
        )
        if name.lower() != pm.name.lower():
            used = await _payments_using(db, school_id, pm.name)
            if used:
                raise ReferentialIntegrityError(
                    f"Cannot rename: this payment method is used in {used} payment(s).", used
                )

    if name is not None:
        pm.name = name
    if payload.description is not None:
        pm.description = _clean_text(payload.description)
    await _commit(db, "Payment method update conflict")
    await db.refresh(pm)
    return PaymentMethodResponse.model_validate(pm)


async def delete_payment_method(db: AsyncSession, school_id: UUID, payment_method_id: UUID) -> None:
    pm = await get_payment_method(db, school_id, payment_method_id)
    used = await _payments_using(db, school_id, pm.name)
    if used:
        raise _blocked("payment method", used, "payment(s)")
    await db.delete(pm)
    await db.commit()
    logger.info("Deleted payment method %s for school %s", payment_method_id, school_id)


# --- Fee Structure ---
def _structure_to_response(fs: FeeStructure) -> FeeStructureResponse:
    return FeeStructureResponse(
        id=fs.id,
        school_id=fs.school_id,
        class_id=fs.class_id,
        academic_year_id=fs.academic_year_id,
        structure=fs.structure,
        created_at=fs.created_at,
        updated_at=fs.updated_at,
    )


async def _find_structure(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    academic_year_id: UUID,
) -> Optional[FeeStructure]:
    return (
        await db.execute(
            select(FeeStructure)
            .where(
                FeeStructure.school_id == school_id,
                FeeStructure.class_id == class_id,
                FeeStructure.academic_year_id == academic_year_id,
            )
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


async def save_fee_structure(
    db: AsyncSession,
    school_id: UUID,
    payload: FeeStructureSave,
) -> FeeStructureResponse:
    """Upsert the structure of (class, academic year); the item set is replaced."""
    await _get_scoped(db, SchoolClass, school_id, payload.class_id, "Class")
    await _get_scoped(db, AcademicYear, school_id, payload.academic_year_id, "Academic year")
    category_ids = list(payload.structure.keys())
    if category_ids:
        found = set(
            (
                await db.execute(
                    select(FeeCategory.id).where(
                        FeeCategory.id.in_(category_ids),
                        FeeCategory.school_id == school_id,
                    )
                )
            ).scalars().all()
        )
        missing = [str(cid) for cid in category_ids if cid not in found]
        if missing:
            raise ValidationError(f"Unknown fee category(ies): {', '.join(missing)}")

    fs = await _find_structure(db, school_id, payload.class_id, payload.academic_year_id)
    if fs is None:
        fs = FeeStructure(
            school_id=school_id,
            class_id=payload.class_id,
            academic_year_id=payload.academic_year_id,
            items=[
                FeeStructureItem(fee_category_id=cid, amount=amount)
                for cid, amount in payload.structure.items()
            ],
        )
        db.add(fs)
    else:
        existing = {item.fee_category_id: item for item in fs.items}
        for item in list(fs.items):
            if item.fee_category_id not in payload.structure:
                fs.items.remove(item)
        for cid, amount in payload.structure.items():
            if cid in existing:
                existing[cid].amount = amount
            else:
                fs.items.append(FeeStructureItem(fee_category_id=cid, amount=amount))
    await _commit(db, "This class already has a fee structure for this academic year")
    fs = await _find_structure(db, school_id, payload.class_id, payload.academic_year_id)
    return _structure_to_response(fs)


async def get_fee_structure(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    academic_year_id: UUID,
) -> FeeStructureResponse:
    fs = await _find_structure(db, school_id, class_id, academic_year_id)
    if not fs:
        raise NotFoundError("Fee structure not found")
    return _structure_to_response(fs)


async def list_fee_structures(
    db: AsyncSession,
    school_id: UUID,
    academic_year_id: Optional[UUID] = None,
) -> List[FeeStructureResponse]:
    stmt = select(FeeStructure).where(FeeStructure.school_id == school_id)
    if academic_year_id is not None:
        stmt = stmt.where(FeeStructure.academic_year_id == academic_year_id)
    result = await db.execute(stmt.order_by(FeeStructure.class_id))
    return [_structure_to_response(fs) for fs in result.scalars().all()]


async def get_structure_amounts(
    db: AsyncSession,
    school_id: UUID,
    academic_year_id: UUID,
    class_ids: Iterable[UUID],
) -> Dict[UUID, Dict[UUID, Decimal]]:
    """class_id -> {fee_category_id: amount} for the given academic year."""
    ids = [cid for cid in set(class_ids) if cid is not None]
    if not ids:
        return {}
    result = await db.execute(
        select(FeeStructure).where(
            FeeStructure.school_id == school_id,
            FeeStructure.academic_year_id == academic_year_id,
            FeeStructure.class_id.in_(ids),
        )
    )
    return {fs.class_id: fs.structure for fs in result.scalars().all()}
