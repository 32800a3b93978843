"""Fee catalog schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fee_ledger.core.amounts import DECIMAL_PLACES, MAX_DIGITS, amount_problem
from fee_ledger.core.enums import FeeInstallmentType


# --- Fee Category ---
class FeeCategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    default_amount: Optional[Decimal] = Field(None, ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class FeeCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    default_amount: Optional[Decimal] = Field(None, ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class FeeCategoryResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    description: Optional[str] = None
    default_amount: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Fee Type ---
class FeeTypeCreate(BaseModel):
    name: str = Field(..., max_length=100)
    display_name: str = Field(..., max_length=255)
    description: Optional[str] = None
    fee_category_id: UUID
    installment_type: FeeInstallmentType = FeeInstallmentType.installments
    is_refundable: bool = False
    default_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class FeeTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    fee_category_id: Optional[UUID] = None
    installment_type: Optional[FeeInstallmentType] = None
    is_refundable: Optional[bool] = None
    default_amount: Optional[Decimal] = Field(None, ge=0, max_digits=MAX_DIGITS, decimal_places=DECIMAL_PLACES)


class FeeTypeResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    fee_category_id: UUID
    installment_type: FeeInstallmentType
    is_refundable: bool
    default_amount: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Fee Type Group ---
class FeeTypeGroupCreate(BaseModel):
    name: str = Field(..., max_length=100)
    fee_type_ids: List[UUID] = Field(..., min_length=1)


class FeeTypeGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    fee_type_ids: Optional[List[UUID]] = Field(None, min_length=1)


class FeeTypeGroupResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    fee_type_ids: List[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Installment Plan ---
class InstallmentPlanCreate(BaseModel):
    title: str = Field(..., max_length=100)
    start_date: date
    end_date: date
    last_date: date
    description: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "InstallmentPlanCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        if self.last_date < self.start_date:
            raise ValueError("last_date cannot be before start_date")
        return self


class InstallmentPlanUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    last_date: Optional[date] = None
    description: Optional[str] = None


class InstallmentPlanResponse(BaseModel):
    id: UUID
    school_id: UUID
    title: str
    start_date: date
    end_date: date
    last_date: date
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Concession Type ---
class ConcessionTypeCreate(BaseModel):
    title: str = Field(..., max_length=100)
    description: Optional[str] = None


class ConcessionTypeUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class ConcessionTypeResponse(BaseModel):
    id: UUID
    school_id: UUID
    title: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Payment Method ---
class PaymentMethodCreate(BaseModel):
    name: str = Field(..., max_length=30)
    description: Optional[str] = None


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=30)
    description: Optional[str] = None


class PaymentMethodResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Fee Structure ---
class FeeStructureSave(BaseModel):
    class_id: UUID
    academic_year_id: UUID
    structure: Dict[UUID, Decimal] = Field(default_factory=dict, description="fee_category_id -> amount")

    @model_validator(mode="after")
    def validate_amounts(self) -> "FeeStructureSave":
        if any(amount < 0 for amount in self.structure.values()):
            raise ValueError("Fee structure amounts cannot be negative")
        for amount in self.structure.values():
            problem = amount_problem(amount)
            if problem:
                raise ValueError(problem)
        return self


class FeeStructureResponse(BaseModel):
    id: UUID
    school_id: UUID
    class_id: UUID
    academic_year_id: UUID
    structure: Dict[UUID, Decimal]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
