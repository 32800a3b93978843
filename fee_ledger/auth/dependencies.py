from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

from fee_ledger.auth.schemas import RequestContext


async def get_request_context(
    x_school_id: Optional[str] = Header(None, alias="X-School-Id"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> RequestContext:
    """Resolve the calling school (and optionally the acting user) from request headers.

    Authentication happens upstream; this only refuses requests that carry no
    usable tenant, so every service call is scoped by school_id.
    """
    if not x_school_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-School-Id header is required",
        )
    try:
        school_id = UUID(x_school_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-School-Id must be a UUID",
        )

    user_id: Optional[UUID] = None
    if x_user_id:
        try:
            user_id = UUID(x_user_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-User-Id must be a UUID",
            )
    return RequestContext(school_id=school_id, user_id=user_id)
