"""Notification model - log of alerts actually delivered."""
import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class NotificationType(str, enum.Enum):
    DOWN = "DOWN"
    UP = "UP"


class Notification(Base):
    """Record of an alert sent for an incident. Also the throttle's lookup key."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_site_type_sent", "site_id", "type", "sent_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    incident_id = Column(Integer, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # DOWN, UP
    sent_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    site = relationship("Site", back_populates="notifications")
    incident = relationship("Incident", back_populates="notifications")
