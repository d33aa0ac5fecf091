"""Status schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class SiteStatus(BaseModel):
    """Latest observed state of a site."""
    id: int
    up: bool
    checked_at: datetime
    error: Optional[str] = None


class StatusResponse(BaseModel):
    sites: List[SiteStatus]
