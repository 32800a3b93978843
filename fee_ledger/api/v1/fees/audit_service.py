"""
Audit logging for ledger state changes. Call on every mutation, inside the same transaction.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.models import FeeAuditLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


async def log_fee_audit(
    db: AsyncSession,
    school_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    """Append one audit log entry. Caller must commit."""
    db.add(
        FeeAuditLog(
            school_id=school_id,
            reference_table=reference_table,
            reference_id=reference_id,
            action_type=action_type,
            old_value=_jsonable(old_value) if old_value is not None else None,
            new_value=_jsonable(new_value) if new_value is not None else None,
            changed_by=changed_by,
        )
    )
