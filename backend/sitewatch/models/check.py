"""Check model - append-only probe history."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Float, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Check(Base):
    """One probe sample. Written once, never updated."""

    __tablename__ = "checks"
    __table_args__ = (
        Index("ix_checks_site_checked", "site_id", "checked_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    up = Column(Boolean, nullable=False)
    checked_at = Column(DateTime, default=utcnow, nullable=False)
    error = Column(String, nullable=True)
    details = Column(String, nullable=True)  # Response headers or exception message
    avg_ms = Column(Float, nullable=True)  # NULL when no sample was collected
    min_ms = Column(Float, nullable=True)
    max_ms = Column(Float, nullable=True)

    site = relationship("Site", back_populates="checks")
