"""Pydantic schemas for API request/response models."""
from .monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    CheckResponse,
)
from .settings import (
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    TestNotificationResponse,
)
from .status import HealthResponse

__all__ = [
    "MonitorCreate",
    "MonitorUpdate",
    "MonitorResponse",
    "CheckResponse",
    "NotificationSettingsResponse",
    "NotificationSettingsUpdate",
    "TestNotificationResponse",
    "HealthResponse",
]
