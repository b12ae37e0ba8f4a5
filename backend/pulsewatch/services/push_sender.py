"""Push notification sender service using the Pushover API."""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

# Pushover keys and tokens are always 30 characters
PUSHOVER_KEY_LENGTH = 30

PRIORITY_NORMAL = 0
PRIORITY_EMERGENCY = 2

# Emergency notifications repeat every `retry` seconds until acknowledged or `expire`
EMERGENCY_RETRY_SECONDS = 60
EMERGENCY_EXPIRE_SECONDS = 3600


@dataclass
class PushMessage:
    """Content of a push notification."""
    title: str
    message: str
    priority: int = PRIORITY_NORMAL
    url: Optional[str] = None
    url_title: Optional[str] = None


def is_valid_credential(value: Optional[str]) -> bool:
    return bool(value) and len(value) == PUSHOVER_KEY_LENGTH


def effective_credentials(user_key: Optional[str], api_token: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Prefer well-formed credentials from the environment over stored ones."""
    if is_valid_credential(settings.pushover_user_key):
        user_key = settings.pushover_user_key
    if is_valid_credential(settings.pushover_api_token):
        api_token = settings.pushover_api_token
    return user_key, api_token


class PushSenderService:
    """Service for sending push notifications via Pushover."""

    def __init__(self, api_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url or settings.pushover_api_url
        self._transport = transport

    async def send_push(self, user_key: str, api_token: str, message: PushMessage) -> bool:
        """Send a push notification to one Pushover user.

        Returns True if notification was accepted by the API.
        """
        if not user_key or not api_token:
            logger.warning("Push not configured - missing user key or API token")
            return False

        form = {
            "token": api_token,
            "user": user_key,
            "title": message.title,
            "message": message.message,
            "priority": str(message.priority),
        }
        if message.url:
            form["url"] = message.url
            form["url_title"] = message.url_title or "View Monitor"
        if message.priority == PRIORITY_EMERGENCY:
            form["retry"] = str(EMERGENCY_RETRY_SECONDS)
            form["expire"] = str(EMERGENCY_EXPIRE_SECONDS)

        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                response = await client.post(self.api_url, data=form)

            if response.status_code < 400:
                logger.info(f"Push notification sent: {message.title}")
                return True

            logger.warning(f"Pushover API returned {response.status_code}: {response.text[:200]}")
            return False

        except httpx.HTTPError as e:
            logger.error(f"Failed to send push notification: {type(e).__name__}: {e}")
            return False


# Global instance
push_sender_service = PushSenderService()
