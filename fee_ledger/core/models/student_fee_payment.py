"""Student fee payment: the ledger row. One charge owed by one student."""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import PaymentStatus
from fee_ledger.db.session import Base


class StudentFeePayment(Base):
    """
    Ledger row. paid_amount never exceeds assigned_amount and status is always
    derived from the two amounts by the ledger service; callers never set it.
    Every UPDATE/DELETE is a compare-and-swap on version (version_id_col).
    """

    __tablename__ = "student_fee_payments"
    __table_args__ = (
        CheckConstraint("assigned_amount >= 0", name="chk_sfp_assigned_non_negative"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= assigned_amount",
            name="chk_sfp_paid_within_assigned",
        ),
        CheckConstraint(
            "status IN ('Pending','PartiallyPaid','Paid')",
            name="chk_sfp_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)

    fee_category_id = Column(Uuid, ForeignKey("fee_categories.id", ondelete="RESTRICT"), nullable=True, index=True)
    fee_type_id = Column(Uuid, ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=True, index=True)
    fee_type_group_id = Column(
        Uuid,
        ForeignKey("fee_type_groups.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    installment_id = Column(Uuid, ForeignKey("installments.id", ondelete="RESTRICT"), nullable=True, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=True)

    assigned_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)
    due_date = Column(Date, nullable=True)
    payment_date = Column(Date, nullable=True)
    payment_mode = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    school = relationship("School")
    student = relationship("Student", foreign_keys=[student_id])
    fee_category = relationship("FeeCategory")
    fee_type = relationship("FeeType")
    fee_type_group = relationship("FeeTypeGroup")
    installment = relationship("InstallmentPlan")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
