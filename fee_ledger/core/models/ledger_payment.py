"""Ledger payment: one recorded payment against a ledger row. Append-only."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class LedgerPayment(Base):
    """
    Payment receipt. requested_amount is what the payer handed over, applied_amount
    what the ledger accepted after clamping to the outstanding balance.
    """

    __tablename__ = "ledger_payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_payment_id = Column(
        Uuid,
        ForeignKey("student_fee_payments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    requested_amount = Column(Numeric(12, 2), nullable=False)
    applied_amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_mode = Column(String(30), nullable=True)  # PaymentMethod.name
    note = Column(Text, nullable=True)
    recorded_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student_fee_payment = relationship("StudentFeePayment", backref="payments")
