"""Fees router: assignment, ledger rows, payments, concessions, balances."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.dependencies import get_request_context
from fee_ledger.auth.schemas import RequestContext
from fee_ledger.core.enums import PaymentStatus
from fee_ledger.core.exceptions import ServiceError
from fee_ledger.db.session import get_db

from .schemas import (
    AssignFeesRequest,
    AssignmentResult,
    ClassTotalsResponse,
    ConcessionCreate,
    ConcessionResponse,
    ConcessionResult,
    EditAssignmentRequest,
    LedgerPaymentResponse,
    LedgerRowResponse,
    PaymentCreate,
    PaymentResult,
    PendingCountResponse,
    StudentBalanceResponse,
)
from . import assignment_service, ledger_service, query_service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Assignment ---
@router.post("/assign", response_model=AssignmentResult, status_code=status.HTTP_201_CREATED)
async def assign_fees(
    payload: AssignFeesRequest,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> AssignmentResult:
    try:
        return await assignment_service.assign_fees(db, ctx.school_id, payload, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Ledger rows ---
@router.get("/rows", response_model=List[LedgerRowResponse])
async def list_ledger_rows(
    student_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    fee_category_id: Optional[UUID] = None,
    fee_type_id: Optional[UUID] = None,
    fee_type_group_id: Optional[UUID] = None,
    installment_id: Optional[UUID] = None,
    academic_year_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[LedgerRowResponse]:
    return await query_service.list_ledger_rows(
        db,
        ctx.school_id,
        student_id=student_id,
        class_id=class_id,
        status=status_filter,
        fee_category_id=fee_category_id,
        fee_type_id=fee_type_id,
        fee_type_group_id=fee_type_group_id,
        installment_id=installment_id,
        academic_year_id=academic_year_id,
    )


@router.get("/rows/{row_id}", response_model=LedgerRowResponse)
async def get_ledger_row(
    row_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> LedgerRowResponse:
    try:
        return await query_service.get_ledger_row(db, ctx.school_id, row_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/rows/{row_id}", response_model=LedgerRowResponse)
async def edit_assignment(
    row_id: UUID,
    payload: EditAssignmentRequest,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> LedgerRowResponse:
    try:
        return await ledger_service.edit_assignment(db, ctx.school_id, row_id, payload, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/rows/{row_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    row_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> None:
    try:
        await ledger_service.delete_assignment(db, ctx.school_id, row_id, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payments ---
@router.post("/rows/{row_id}/payments", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
async def record_payment(
    row_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PaymentResult:
    try:
        return await ledger_service.record_payment(db, ctx.school_id, row_id, payload, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Concessions ---
@router.post("/rows/{row_id}/concessions", response_model=ConcessionResult, status_code=status.HTTP_201_CREATED)
async def apply_concession(
    row_id: UUID,
    payload: ConcessionCreate,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ConcessionResult:
    try:
        return await ledger_service.apply_concession(db, ctx.school_id, row_id, payload, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/concessions/{concession_id}/reverse", response_model=ConcessionResult)
async def reverse_concession(
    concession_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ConcessionResult:
    try:
        return await ledger_service.reverse_concession(db, ctx.school_id, concession_id, ctx.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/concessions", response_model=List[ConcessionResponse])
async def list_concessions(
    student_id: Optional[UUID] = None,
    row_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[ConcessionResponse]:
    return await query_service.list_concessions(db, ctx.school_id, student_id=student_id, row_id=row_id)


# --- Reports ---
@router.get("/students/{student_id}/balance", response_model=StudentBalanceResponse)
async def get_student_balance(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> StudentBalanceResponse:
    try:
        return await query_service.get_student_balance(db, ctx.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/students/{student_id}/payments", response_model=List[LedgerPaymentResponse])
async def get_payment_history(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> List[LedgerPaymentResponse]:
    try:
        return await query_service.get_payment_history(db, ctx.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/students/{student_id}/pending-count", response_model=PendingCountResponse)
async def count_student_pending(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PendingCountResponse:
    try:
        count = await query_service.count_pending(db, ctx.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return PendingCountResponse(student_id=student_id, pending_count=count)


@router.get("/pending-count", response_model=PendingCountResponse)
async def count_school_pending(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> PendingCountResponse:
    return PendingCountResponse(pending_count=await query_service.count_pending(db, ctx.school_id))


@router.get("/classes/{class_id}/totals", response_model=ClassTotalsResponse)
async def get_class_totals(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> ClassTotalsResponse:
    try:
        return await query_service.get_class_totals(db, ctx.school_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
