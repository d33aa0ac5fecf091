"""Database models."""
from .site import Site
from .check import Check
from .incident import Incident
from .notification import Notification, NotificationType

__all__ = ["Site", "Check", "Incident", "Notification", "NotificationType"]
