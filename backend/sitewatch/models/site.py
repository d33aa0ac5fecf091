"""Site model - registered endpoints being monitored."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Site(Base):
    """A monitored endpoint with its alerting metadata."""

    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String, nullable=False)
    email = Column(String, nullable=False)  # Alert recipient(s), comma-separated
    interval = Column(Integer, nullable=False, default=5)  # minutes
    monitor_type = Column(String, nullable=False, default="http")
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    checks = relationship("Check", back_populates="site", cascade="all, delete-orphan", passive_deletes=True)
    incidents = relationship("Incident", back_populates="site", cascade="all, delete-orphan", passive_deletes=True)
    notifications = relationship(
        "Notification", back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )
