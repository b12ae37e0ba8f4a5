"""Health schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Service health including scheduler liveness."""
    status: str  # healthy, degraded
    scheduler_enabled: bool
    heartbeat_at: Optional[datetime] = None
    heartbeat_stale: bool
