"""Services for probing, incident tracking, notification and scheduling."""
from .prober import ProbeService, ProbeResult
from .email_sender import EmailSenderService
from .throttle import NotificationThrottle
from .incidents import IncidentManager, CheckOutcome
from .site_events import SiteEventBus, SiteEvent
from .scheduler import SchedulerService, InvalidIntervalError

__all__ = [
    "ProbeService",
    "ProbeResult",
    "EmailSenderService",
    "NotificationThrottle",
    "IncidentManager",
    "CheckOutcome",
    "SiteEventBus",
    "SiteEvent",
    "SchedulerService",
    "InvalidIntervalError",
]
