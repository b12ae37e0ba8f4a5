"""Heartbeat model - liveness timestamps keyed by process role."""
from sqlalchemy import Column, String, DateTime

from ..database import Base

SCHEDULER_HEARTBEAT_KEY = "scheduler"


class Heartbeat(Base):
    """Last time a periodic loop reported itself alive."""

    __tablename__ = "heartbeats"

    key = Column(String, primary_key=True)
    beat_at = Column(DateTime, nullable=False)
