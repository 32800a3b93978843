"""Fee category master (Tuition, Transport, Exam). School-scoped."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeCategory(Base):
    """School-scoped fee category. Hard delete only while nothing references it."""

    __tablename__ = "fee_categories"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_fee_category_school_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    # Fallback amount for category-based assignment when no fee structure applies
    default_amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School", backref="fee_categories")
