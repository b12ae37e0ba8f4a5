"""Monitor schemas for API."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class MonitorCreate(BaseModel):
    """Schema for creating a new monitor."""
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048, pattern=r"^https?://")
    check_interval_minutes: int = Field(default=5, ge=1, le=1440)


class MonitorUpdate(BaseModel):
    """Schema for updating a monitor."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, min_length=1, max_length=2048, pattern=r"^https?://")
    check_interval_minutes: Optional[int] = Field(None, ge=1, le=1440)


class MonitorResponse(BaseModel):
    """Schema for monitor in API responses."""
    id: int
    name: str
    url: str
    check_interval_minutes: int
    status: str  # pending, up, down
    last_checked_at: Optional[datetime] = None
    last_status_change_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CheckResponse(BaseModel):
    """A single recorded check."""
    id: int
    monitor_id: int
    status: str  # success, failed
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    checked_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True
