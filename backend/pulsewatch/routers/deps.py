"""Shared API dependencies."""
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..services.check_service import check_service, CheckService
from ..services.dispatcher import notification_dispatcher, NotificationDispatcher


async def get_current_user_id(
    x_user_id: int = Header(..., alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Resolve the calling user from the header set by the auth proxy."""
    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user.id


def get_check_service() -> CheckService:
    return check_service


def get_dispatcher() -> NotificationDispatcher:
    return notification_dispatcher
