"""Monitor model - HTTP endpoints being monitored."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.clock import utcnow


class Monitor(Base):
    """A monitored HTTP(S) URL owned by a single user."""

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    check_interval_minutes = Column(Integer, nullable=False, default=5)
    status = Column(String, nullable=False, default="pending")  # pending, up, down
    last_checked_at = Column(DateTime, nullable=True)
    last_status_change_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    owner = relationship("User", back_populates="monitors")
    checks = relationship("Check", back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True)
    alerts = relationship("Alert", back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True)
