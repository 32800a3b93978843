"""Fee structure: per class per academic year template mapping category -> amount."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeStructure(Base):
    """One structure per (class, academic year). A template, not a ledger row."""

    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint("class_id", "academic_year_id", name="uq_fee_structure_class_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    academic_year_id = Column(
        Uuid,
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    academic_year = relationship("AcademicYear")
    items = relationship(
        "FeeStructureItem",
        back_populates="fee_structure",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def structure(self):
        return {item.fee_category_id: item.amount for item in self.items}


class FeeStructureItem(Base):
    __tablename__ = "fee_structure_items"
    __table_args__ = (
        UniqueConstraint("fee_structure_id", "fee_category_id", name="uq_fee_structure_item_category"),
        CheckConstraint("amount >= 0", name="chk_fee_structure_item_amount"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_category_id = Column(
        Uuid,
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)

    fee_structure = relationship("FeeStructure", back_populates="items")
    fee_category = relationship("FeeCategory")
