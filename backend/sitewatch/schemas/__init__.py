"""Pydantic schemas for API request/response models."""
from .site import (
    SiteCreate,
    SiteUpdate,
    SiteResponse,
    CheckRecord,
)
from .monitor import (
    ProbeResponse,
    CheckOutcomeResponse,
    NotificationTestRequest,
    NotificationTestResponse,
)
from .incident import (
    IncidentResponse,
    IncidentDetail,
    NotificationRecord,
)
from .status import (
    SiteStatus,
    StatusResponse,
)

__all__ = [
    "SiteCreate",
    "SiteUpdate",
    "SiteResponse",
    "CheckRecord",
    "ProbeResponse",
    "CheckOutcomeResponse",
    "NotificationTestRequest",
    "NotificationTestResponse",
    "IncidentResponse",
    "IncidentDetail",
    "NotificationRecord",
    "SiteStatus",
    "StatusResponse",
]
