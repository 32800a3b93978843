"""Fee catalog router: categories, fee types, groups, installments, concession types, payment methods, fee structures."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.dependencies import get_request_context
from fee_ledger.auth.schemas import RequestContext
from fee_ledger.core.enums import FeeInstallmentType
from fee_ledger.core.exceptions import ServiceError
from fee_ledger.db.session import get_db

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
from . import service

router = APIRouter(prefix="/api/v1/fee-catalog", tags=["fee-catalog"])


# --- Fee Category ---
@router.post("/categories", response_model=FeeCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_category(
    payload: FeeCategoryCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeCategoryResponse:
    try:
        return await service.create_fee_category(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/categories", response_model=List[FeeCategoryResponse])
async def list_fee_categories(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[FeeCategoryResponse]:
    return await service.list_fee_categories(db, ctx.school_id)


@router.get("/categories/{category_id}", response_model=FeeCategoryResponse)
async def get_fee_category(
    category_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeCategoryResponse:
    try:
        fc = await service.get_fee_category(db, ctx.school_id, category_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return FeeCategoryResponse.model_validate(fc)


@router.patch("/categories/{category_id}", response_model=FeeCategoryResponse)
async def update_fee_category(
    category_id: UUID,
    payload: FeeCategoryUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeCategoryResponse:
    try:
        return await service.update_fee_category(db, ctx.school_id, category_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fee_category(
    category_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_fee_category(db, ctx.school_id, category_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee Type ---
@router.post("/types", response_model=FeeTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_type(
    payload: FeeTypeCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeResponse:
    try:
        return await service.create_fee_type(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/types", response_model=List[FeeTypeResponse])
async def list_fee_types(
    installment_type: Optional[FeeInstallmentType] = Query(
        None, description="extra_charge lists the special (one-off) fee types"
    ),
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[FeeTypeResponse]:
    return await service.list_fee_types(db, ctx.school_id, installment_type)


@router.get("/types/{fee_type_id}", response_model=FeeTypeResponse)
async def get_fee_type(
    fee_type_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeResponse:
    try:
        ft = await service.get_fee_type(db, ctx.school_id, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return FeeTypeResponse.model_validate(ft)


@router.patch("/types/{fee_type_id}", response_model=FeeTypeResponse)
async def update_fee_type(
    fee_type_id: UUID,
    payload: FeeTypeUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeResponse:
    try:
        return await service.update_fee_type(db, ctx.school_id, fee_type_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/types/{fee_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fee_type(
    fee_type_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_fee_type(db, ctx.school_id, fee_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee Type Group ---
@router.post("/groups", response_model=FeeTypeGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_type_group(
    payload: FeeTypeGroupCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeGroupResponse:
    try:
        return await service.create_fee_type_group(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/groups", response_model=List[FeeTypeGroupResponse])
async def list_fee_type_groups(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[FeeTypeGroupResponse]:
    return await service.list_fee_type_groups(db, ctx.school_id)


@router.get("/groups/{group_id}", response_model=FeeTypeGroupResponse)
async def get_fee_type_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeGroupResponse:
    try:
        group = await service.get_fee_type_group(db, ctx.school_id, group_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return FeeTypeGroupResponse.model_validate(group)


@router.patch("/groups/{group_id}", response_model=FeeTypeGroupResponse)
async def update_fee_type_group(
    group_id: UUID,
    payload: FeeTypeGroupUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeTypeGroupResponse:
    try:
        return await service.update_fee_type_group(db, ctx.school_id, group_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/groups/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fee_type_group(
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_fee_type_group(db, ctx.school_id, group_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Installment Plan ---
@router.post("/installments", response_model=InstallmentPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_installment(
    payload: InstallmentPlanCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> InstallmentPlanResponse:
    try:
        return await service.create_installment(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/installments", response_model=List[InstallmentPlanResponse])
async def list_installments(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[InstallmentPlanResponse]:
    return await service.list_installments(db, ctx.school_id)


@router.get("/installments/{installment_id}", response_model=InstallmentPlanResponse)
async def get_installment(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> InstallmentPlanResponse:
    try:
        plan = await service.get_installment(db, ctx.school_id, installment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return InstallmentPlanResponse.model_validate(plan)


@router.patch("/installments/{installment_id}", response_model=InstallmentPlanResponse)
async def update_installment(
    installment_id: UUID,
    payload: InstallmentPlanUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> InstallmentPlanResponse:
    try:
        return await service.update_installment(db, ctx.school_id, installment_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/installments/{installment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_installment(
    installment_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_installment(db, ctx.school_id, installment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Concession Type ---
@router.post("/concession-types", response_model=ConcessionTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_concession_type(
    payload: ConcessionTypeCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ConcessionTypeResponse:
    try:
        return await service.create_concession_type(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/concession-types", response_model=List[ConcessionTypeResponse])
async def list_concession_types(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[ConcessionTypeResponse]:
    return await service.list_concession_types(db, ctx.school_id)


@router.get("/concession-types/{concession_type_id}", response_model=ConcessionTypeResponse)
async def get_concession_type(
    concession_type_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ConcessionTypeResponse:
    try:
        ct = await service.get_concession_type(db, ctx.school_id, concession_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ConcessionTypeResponse.model_validate(ct)


@router.patch("/concession-types/{concession_type_id}", response_model=ConcessionTypeResponse)
async def update_concession_type(
    concession_type_id: UUID,
    payload: ConcessionTypeUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ConcessionTypeResponse:
    try:
        return await service.update_concession_type(db, ctx.school_id, concession_type_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/concession-types/{concession_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_concession_type(
    concession_type_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_concession_type(db, ctx.school_id, concession_type_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment Method ---
@router.post("/payment-methods", response_model=PaymentMethodResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_method(
    payload: PaymentMethodCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PaymentMethodResponse:
    try:
        return await service.create_payment_method(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def list_payment_methods(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[PaymentMethodResponse]:
    return await service.list_payment_methods(db, ctx.school_id)


@router.get("/payment-methods/{payment_method_id}", response_model=PaymentMethodResponse)
async def get_payment_method(
    payment_method_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PaymentMethodResponse:
    try:
        pm = await service.get_payment_method(db, ctx.school_id, payment_method_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return PaymentMethodResponse.model_validate(pm)


@router.patch("/payment-methods/{payment_method_id}", response_model=PaymentMethodResponse)
async def update_payment_method(
    payment_method_id: UUID,
    payload: PaymentMethodUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PaymentMethodResponse:
    try:
        return await service.update_payment_method(db, ctx.school_id, payment_method_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/payment-methods/{payment_method_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment_method(
    payment_method_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await service.delete_payment_method(db, ctx.school_id, payment_method_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee Structure ---
@router.put("/structures", response_model=FeeStructureResponse)
async def save_fee_structure(
    payload: FeeStructureSave,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeStructureResponse:
    try:
        return await service.save_fee_structure(db, ctx.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/structures", response_model=List[FeeStructureResponse])
async def list_fee_structures(
    academic_year_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(db, ctx.school_id, academic_year_id)


@router.get("/structures/{class_id}/{academic_year_id}", response_model=FeeStructureResponse)
async def get_fee_structure(
    class_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> FeeStructureResponse:
    try:
        return await service.get_fee_structure(db, ctx.school_id, class_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
