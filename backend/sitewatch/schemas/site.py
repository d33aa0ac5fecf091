"""Site schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SiteCreate(BaseModel):
    """Schema for registering a new site."""
    url: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    interval: int = Field(default=5, ge=1, le=1440)  # minutes
    monitor_type: str = Field(default="http", min_length=1, max_length=50)


class SiteUpdate(BaseModel):
    """Schema for updating a site."""
    url: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    interval: Optional[int] = Field(None, ge=1, le=1440)
    monitor_type: Optional[str] = Field(None, min_length=1, max_length=50)


class SiteResponse(BaseModel):
    """Schema for a site in API responses."""
    id: int
    url: str
    email: str
    interval: int
    monitor_type: str
    created_at: datetime
    scheduled: bool = False

    class Config:
        from_attributes = True


class CheckRecord(BaseModel):
    """A stored check."""
    id: int
    site_id: int
    up: bool
    checked_at: datetime
    error: Optional[str] = None
    details: Optional[str] = None
    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None

    class Config:
        from_attributes = True
