"""Student fee concession: append-only record of a discount applied to a ledger row."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class StudentFeeConcession(Base):
    """
    Never updated or deleted. A reversal is a new record with a negative amount
    pointing at the original through reversal_of_id.
    """

    __tablename__ = "student_fee_concessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_payment_id = Column(
        Uuid,
        ForeignKey("student_fee_payments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    concession_type_id = Column(
        Uuid,
        ForeignKey("concession_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    applied_by = Column(Uuid, nullable=True)
    reversal_of_id = Column(
        Uuid,
        ForeignKey("student_fee_concessions.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student_fee_payment = relationship("StudentFeePayment", backref="concessions")
    concession_type = relationship("ConcessionType")
