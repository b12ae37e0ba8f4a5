"""Notification settings API endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import NotificationSettings
from ..schemas.settings import (
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    TestNotificationResponse,
)
from ..services.dispatcher import EMAIL, PUSH, NotificationDispatcher, NotificationNotConfiguredError
from ..services.notification_settings import load_settings, update_settings
from ..utils.db_utils import retry_on_lock
from .deps import get_current_user_id, get_dispatcher

router = APIRouter(prefix="/api/notification-settings", tags=["settings"])


def _build_settings_response(row: NotificationSettings | None) -> NotificationSettingsResponse:
    """Build a response without exposing the API token."""
    if row is None:
        # No row yet: every channel is off
        return NotificationSettingsResponse()
    return NotificationSettingsResponse(
        email_enabled=bool(row.email_enabled),
        email_address=row.email_address,
        push_enabled=bool(row.push_enabled),
        push_user_key=row.push_user_key,
        push_api_token_set=bool(row.push_api_token),
    )


@router.get("", response_model=NotificationSettingsResponse)
async def get_notification_settings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's notification settings."""
    return _build_settings_response(await load_settings(db, user_id))


@router.put("", response_model=NotificationSettingsResponse)
async def put_notification_settings(
    update: NotificationSettingsUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Update settings, creating the default row (email on) first if needed."""
    row = await update_settings(db, user_id, update.model_dump(exclude_unset=True))
    await retry_on_lock(db.commit)
    return _build_settings_response(row)


async def _send_test(db: AsyncSession, dispatcher: NotificationDispatcher, user_id: int, channel: str):
    try:
        success = await dispatcher.send_test(db, user_id, channel)
    except NotificationNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TestNotificationResponse(channel=channel, success=success)


@router.post("/test-email", response_model=TestNotificationResponse)
async def send_test_email(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a test email to the caller's alert address."""
    return await _send_test(db, dispatcher, user_id, EMAIL)


@router.post("/test-pushover", response_model=TestNotificationResponse)
async def send_test_pushover(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Send a test push notification with the caller's Pushover credentials."""
    return await _send_test(db, dispatcher, user_id, PUSH)
