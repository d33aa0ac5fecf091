"""Incident schemas for API."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class NotificationRecord(BaseModel):
    """A notification sent for an incident."""
    sent_at: datetime
    type: str  # DOWN, UP

    class Config:
        from_attributes = True


class IncidentResponse(BaseModel):
    """An incident together with its site's details."""
    id: int
    site_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    resolved: bool
    error: Optional[str] = None
    details: Optional[str] = None
    up: bool
    url: str
    email: str
    monitor_type: str
    interval: int
    notifications: List[NotificationRecord] = []


class IncidentDetail(BaseModel):
    """An incident and the other incidents of the same site."""
    incident: IncidentResponse
    related_incidents: List[IncidentResponse]
