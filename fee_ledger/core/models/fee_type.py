"""Fee type: a chargeable item within a category, billed per installment or as an extra charge."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import FeeInstallmentType
from fee_ledger.db.session import Base


class FeeType(Base):
    """
    School-scoped fee type. name is code-like (stored upper-case), display_name is what
    receipts show. installment_type 'extra_charge' marks the special (one-off) fee types.
    """

    __tablename__ = "fee_types"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_fee_type_school_name"),
        CheckConstraint(
            "installment_type IN ('installments','extra_charge')",
            name="chk_fee_type_installment_type",
        ),
        CheckConstraint("default_amount >= 0", name="chk_fee_type_default_amount"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    fee_category_id = Column(
        Uuid,
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    installment_type = Column(String(20), nullable=False, default=FeeInstallmentType.installments.value)
    is_refundable = Column(Boolean, nullable=False, default=False)
    default_amount = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
    fee_category = relationship("FeeCategory", backref="fee_types")
