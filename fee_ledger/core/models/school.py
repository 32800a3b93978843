import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from fee_ledger.db.session import Base


class School(Base):
    """
    Tenant (school). Every ledger entity is scoped by school_id; cross-school
    reads and writes are rejected in the service layer.
    """

    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
