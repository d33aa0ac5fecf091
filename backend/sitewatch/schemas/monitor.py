"""Probe and manual check schemas."""
from typing import Optional
from pydantic import BaseModel


class ProbeResponse(BaseModel):
    """Result of an on-demand probe."""
    url: str
    up: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[str] = None
    average_response_time_ms: Optional[float] = None
    min_response_time_ms: Optional[float] = None
    max_response_time_ms: Optional[float] = None
    samples: int = 0


class CheckOutcomeResponse(BaseModel):
    """Result of checking a registered site."""
    site_id: int
    up: bool
    was_up: bool
    transition: Optional[str] = None  # down, up
    check_id: Optional[int] = None
    incident_id: Optional[int] = None
    notification_sent: bool = False
    error: Optional[str] = None
    details: Optional[str] = None
    average_response_time_ms: Optional[float] = None
    min_response_time_ms: Optional[float] = None
    max_response_time_ms: Optional[float] = None


class NotificationTestRequest(BaseModel):
    """Request to send a test notification."""
    email: str
    subject: str = "SiteWatch - Test Notification"
    body: Optional[str] = None


class NotificationTestResponse(BaseModel):
    success: bool
    message: str
