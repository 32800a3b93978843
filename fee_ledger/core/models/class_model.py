"""School-scoped classes (e.g. Nursery, LKG, 1st, 10th). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class SchoolClass(Base):
    """School-scoped class master. Soft delete via is_active."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("school_id", "name", "division", name="uq_class_school_name_division"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    division = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school = relationship("School", backref="school_classes")
