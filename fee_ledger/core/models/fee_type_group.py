"""Fee type group: a named bundle of fee types assigned together."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeTypeGroup(Base):
    """School-scoped bundle of fee types. Members live in fee_type_group_items."""

    __tablename__ = "fee_type_groups"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_fee_type_group_school_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
    items = relationship(
        "FeeTypeGroupItem",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="FeeTypeGroupItem.position",
        lazy="selectin",
    )

    @property
    def fee_type_ids(self):
        return [item.fee_type_id for item in self.items]


class FeeTypeGroupItem(Base):
    """One fee type inside a group."""

    __tablename__ = "fee_type_group_items"
    __table_args__ = (
        UniqueConstraint("fee_type_group_id", "fee_type_id", name="uq_fee_type_group_item"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_type_group_id = Column(
        Uuid,
        ForeignKey("fee_type_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_type_id = Column(Uuid, ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    group = relationship("FeeTypeGroup", back_populates="items")
    fee_type = relationship("FeeType")
