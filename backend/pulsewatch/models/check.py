"""Check model - immutable history of probe results."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.clock import utcnow


class Check(Base):
    """One probe result. Rows are written once and never updated."""

    __tablename__ = "checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False)  # success, failed
    status_code = Column(Integer, nullable=True)  # NULL on transport failure
    response_time_ms = Column(Integer, nullable=True)  # NULL on transport failure
    error_message = Column(String, nullable=True)  # Set only on transport failure
    checked_at = Column(DateTime, nullable=False, index=True)  # When the probe ran
    created_at = Column(DateTime, nullable=False, default=utcnow)  # When recorded

    # Relationships
    monitor = relationship("Monitor", back_populates="checks")
