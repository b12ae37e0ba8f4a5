"""Notification settings lookup and defaults."""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import NotificationSettings

logger = logging.getLogger(__name__)

# Fields a user may change
EDITABLE_FIELDS = (
    "email_enabled",
    "email_address",
    "push_enabled",
    "push_user_key",
    "push_api_token",
)

# Channel switches are NOT NULL; a null in an update leaves them as they are
TOGGLE_FIELDS = ("email_enabled", "push_enabled")


async def load_settings(session: AsyncSession, user_id: int) -> Optional[NotificationSettings]:
    """Get a user's settings row, or None if they never saved any."""
    result = await session.execute(
        select(NotificationSettings).where(NotificationSettings.user_id == user_id)
    )
    return result.scalar_one_or_none()


def default_settings(user_id: int) -> NotificationSettings:
    """Build (but do not store) the default row: email on, push off."""
    return NotificationSettings(
        user_id=user_id,
        email_enabled=True,
        email_address=None,
        push_enabled=False,
        push_user_key=None,
        push_api_token=None,
    )


async def get_or_create_settings(session: AsyncSession, user_id: int) -> NotificationSettings:
    """Return the user's settings, creating the default row if missing."""
    existing = await load_settings(session, user_id)
    if existing:
        return existing

    created = default_settings(user_id)
    session.add(created)
    await session.flush()
    logger.info(f"Created default notification settings for user {user_id}")
    return created


async def update_settings(session: AsyncSession, user_id: int, changes: dict) -> NotificationSettings:
    """Apply a partial update. Unknown keys are ignored.

    An empty push_api_token clears the stored token; a missing one keeps it.
    A null channel switch is ignored.
    """
    row = await get_or_create_settings(session, user_id)
    for field in EDITABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field in TOGGLE_FIELDS and value is None:
            continue
        if field in ("email_address", "push_user_key", "push_api_token") and value == "":
            value = None
        setattr(row, field, value)
    await session.flush()
    return row
