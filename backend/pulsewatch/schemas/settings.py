"""Notification settings schemas for API."""
from typing import Optional
from pydantic import BaseModel, Field


class NotificationSettingsResponse(BaseModel):
    """Schema for notification settings response. The API token is never returned."""
    email_enabled: bool = False
    email_address: Optional[str] = None
    push_enabled: bool = False
    push_user_key: Optional[str] = None
    push_api_token_set: bool = False


class NotificationSettingsUpdate(BaseModel):
    """Schema for updating notification settings."""
    email_enabled: Optional[bool] = None
    email_address: Optional[str] = Field(None, max_length=255)
    push_enabled: Optional[bool] = None
    push_user_key: Optional[str] = Field(None, max_length=64)
    push_api_token: Optional[str] = Field(None, max_length=64)  # Write-only


class TestNotificationResponse(BaseModel):
    """Outcome of sending a test notification."""
    channel: str  # email, push
    success: bool
