"""Installment plan: a named billing window with its own final due date."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class InstallmentPlan(Base):
    """
    Billing period per school (e.g. "Term 1"). last_date is the default due date
    for ledger rows assigned against the plan.
    """

    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("school_id", "title", name="uq_installment_school_title"),
        CheckConstraint("start_date <= end_date", name="chk_installment_window"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    last_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
