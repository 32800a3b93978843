from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class RequestContext(BaseModel):
    """Tenant and actor of the current request, as forwarded by the upstream gateway."""

    school_id: UUID
    user_id: Optional[UUID] = None
