"""Incident model - outage intervals."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Index, text
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time_utils import utcnow


class Incident(Base):
    """A period during which a site was considered unreachable.

    Opened on an up->down transition and resolved on the next down->up
    transition. The partial unique index keeps at most one unresolved
    incident per site.
    """

    __tablename__ = "incidents"
    __table_args__ = (
        Index(
            "ux_incidents_open_per_site",
            "site_id",
            unique=True,
            sqlite_where=text("NOT resolved"),
            postgresql_where=text("NOT resolved"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    start_time = Column(DateTime, default=utcnow, nullable=False)
    end_time = Column(DateTime, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)
    error = Column(String, nullable=True)
    details = Column(String, nullable=True)
    up = Column(Boolean, nullable=False, default=False)

    # Relationships
    site = relationship("Site", back_populates="incidents")
    notifications = relationship(
        "Notification",
        back_populates="incident",
        order_by="Notification.sent_at",
        passive_deletes=True,
    )
