"""Notification dispatcher - fans a status transition out to alert channels."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Alert, Check, Monitor, NotificationSettings, User
from ..utils.clock import utcnow
from ..utils.db_utils import retry_on_lock
from .email_sender import (
    email_sender_service,
    EmailSenderService,
    TEMPLATE_DOWN,
    TEMPLATE_RECOVERY,
    TEMPLATE_TEST,
)
from .notification_settings import load_settings
from .push_sender import (
    push_sender_service,
    effective_credentials,
    PushMessage,
    PushSenderService,
    PRIORITY_EMERGENCY,
    PRIORITY_NORMAL,
)
from .transitioner import DOWN, UP

logger = logging.getLogger(__name__)

EMAIL = "email"
PUSH = "push"


class NotificationNotConfiguredError(Exception):
    """A test notification was requested for a channel that cannot send."""


@dataclass
class DispatchResult:
    """Per-channel delivery outcome. Channels that were not attempted are absent."""
    channels: Dict[str, bool] = field(default_factory=dict)

    @property
    def attempted(self) -> bool:
        return bool(self.channels)

    @property
    def all_succeeded(self) -> bool:
        return self.attempted and all(self.channels.values())


def format_duration(minutes: float) -> str:
    """Format a duration in minutes as e.g. '2 hours and 5 minutes'."""
    minutes = int(round(minutes))

    def plural(count: int, unit: str) -> str:
        return f"{count} {unit}" + ("" if count == 1 else "s")

    if minutes < 60:
        return plural(minutes, "minute")

    hours, remaining_minutes = divmod(minutes, 60)
    if hours < 24:
        duration = plural(hours, "hour")
        if remaining_minutes:
            duration += " and " + plural(remaining_minutes, "minute")
        return duration

    days, remaining_hours = divmod(hours, 24)
    duration = plural(days, "day")
    if remaining_hours:
        duration += " and " + plural(remaining_hours, "hour")
    return duration


def downtime_minutes(down_since: Optional[datetime], recovered_at: datetime) -> Optional[float]:
    """Minutes between entering ``down`` and the recovery check."""
    if down_since is None:
        return None
    return max((recovered_at - down_since).total_seconds(), 0) / 60


class NotificationDispatcher:
    """Service for delivering status change alerts over email and push."""

    def __init__(
        self,
        email_sender: Optional[EmailSenderService] = None,
        push_sender: Optional[PushSenderService] = None,
    ):
        self.email_sender = email_sender or email_sender_service
        self.push_sender = push_sender or push_sender_service

    def build_payload(
        self,
        monitor: Monitor,
        direction: str,
        check: Check,
        down_since: Optional[datetime] = None,
    ) -> dict:
        """Channel-independent alert content."""
        payload = {
            "monitor_id": monitor.id,
            "monitor_name": monitor.name,
            "url": monitor.url,
            "status": direction,
            "timestamp": check.checked_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        }
        if direction == DOWN:
            payload["error_details"] = check.error_message or (
                f"HTTP {check.status_code} response received" if check.status_code is not None else "Unknown error"
            )
            payload["status_code"] = check.status_code
        else:
            minutes = downtime_minutes(down_since, check.checked_at)
            if minutes is not None:
                payload["downtime_minutes"] = round(minutes, 2)
                payload["downtime_duration"] = format_duration(minutes)
        return payload

    def build_push_message(self, payload: dict) -> PushMessage:
        name = payload["monitor_name"]
        if payload["status"] == DOWN:
            text = f"Monitor '{name}' is DOWN: {payload['error_details']}"
            return PushMessage(
                title="Monitor Down",
                message=text,
                priority=PRIORITY_EMERGENCY,
                url=payload["url"],
            )

        text = f"Monitor '{name}' has RECOVERED"
        if payload.get("downtime_duration"):
            text += f" after {payload['downtime_duration']}"
        return PushMessage(
            title="Monitor Recovered",
            message=text,
            priority=PRIORITY_NORMAL,
            url=payload["url"],
        )

    async def dispatch(
        self,
        session: AsyncSession,
        monitor: Monitor,
        direction: str,
        check: Check,
        down_since: Optional[datetime] = None,
    ) -> DispatchResult:
        """Send an alert for a monitor transition on every enabled channel.

        Channel failures are logged and reported in the result, never raised.
        """
        result = DispatchResult()
        if direction not in (DOWN, UP):
            logger.warning(f"Ignoring dispatch for unknown direction {direction!r}")
            return result

        prefs = await load_settings(session, monitor.owner_id)
        if prefs is None:
            logger.debug(f"No notification settings for user {monitor.owner_id}, skipping alerts")
            return result

        payload = self.build_payload(monitor, direction, check, down_since)

        if prefs.email_enabled:
            address = await self._resolve_email(session, monitor.owner_id, prefs)
            if address:
                result.channels[EMAIL] = await self._send_email(monitor, address, payload)
            else:
                logger.warning(f"Email alerts enabled for user {monitor.owner_id} but no address known")

        if prefs.push_enabled:
            user_key, api_token = effective_credentials(prefs.push_user_key, prefs.push_api_token)
            if user_key and api_token:
                result.channels[PUSH] = await self._send_push(monitor, user_key, api_token, payload)
            else:
                logger.warning(f"Push alerts enabled for user {monitor.owner_id} but credentials are missing")

        await self._record_alerts(session, monitor, direction, payload, result)
        return result

    async def send_test(self, session: AsyncSession, user_id: int, channel: str) -> bool:
        """Send a test message on one channel using the user's saved settings.

        Raises NotificationNotConfiguredError if the channel is disabled or
        has no address or credentials. Delivery failures return False.
        """
        prefs = await load_settings(session, user_id)

        if channel == EMAIL:
            if prefs is None or not prefs.email_enabled:
                raise NotificationNotConfiguredError("Email notifications are not enabled")
            address = await self._resolve_email(session, user_id, prefs)
            if not address:
                raise NotificationNotConfiguredError("No email address is configured")
            try:
                sent = await self.email_sender.send_email(address, {"template": TEMPLATE_TEST})
            except Exception as e:
                logger.error(f"Failed to send test email for user {user_id}: {type(e).__name__}: {e}")
                return False

        elif channel == PUSH:
            if prefs is None or not prefs.push_enabled:
                raise NotificationNotConfiguredError("Push notifications are not enabled")
            user_key, api_token = effective_credentials(prefs.push_user_key, prefs.push_api_token)
            if not user_key or not api_token:
                raise NotificationNotConfiguredError("Pushover credentials are not configured")
            message = PushMessage(
                title="Test Notification",
                message="Push alerts are configured correctly.",
                priority=PRIORITY_NORMAL,
            )
            try:
                sent = await self.push_sender.send_push(user_key, api_token, message)
            except Exception as e:
                logger.error(f"Failed to send test push for user {user_id}: {type(e).__name__}")
                return False

        else:
            raise ValueError(f"Unknown notification channel: {channel}")

        logger.info(f"Test {channel} notification for user {user_id}: {'sent' if sent else 'failed'}")
        return bool(sent)

    async def _resolve_email(
        self,
        session: AsyncSession,
        user_id: int,
        prefs: NotificationSettings,
    ) -> Optional[str]:
        if prefs.email_address:
            return prefs.email_address
        owner = await session.get(User, user_id)
        return owner.email if owner else None

    async def _send_email(self, monitor: Monitor, address: str, payload: dict) -> bool:
        template = TEMPLATE_DOWN if payload["status"] == DOWN else TEMPLATE_RECOVERY
        try:
            return await self.email_sender.send_email(address, {"template": template, **payload})
        except Exception as e:
            logger.error(f"Failed to send email alert for monitor {monitor.id}: {type(e).__name__}: {e}")
            return False

    async def _send_push(self, monitor: Monitor, user_key: str, api_token: str, payload: dict) -> bool:
        try:
            return await self.push_sender.send_push(user_key, api_token, self.build_push_message(payload))
        except Exception as e:
            logger.error(f"Failed to send push alert for monitor {monitor.id}: {type(e).__name__}")
            return False

    async def _record_alerts(
        self,
        session: AsyncSession,
        monitor: Monitor,
        direction: str,
        payload: dict,
        result: DispatchResult,
    ):
        """Append one alert log row per attempted channel."""
        if not result.attempted:
            return
        try:
            now = utcnow()
            for channel, success in result.channels.items():
                session.add(Alert(
                    monitor_id=monitor.id,
                    alert_type=direction,
                    channel=channel,
                    sent_at=now,
                    payload=json.dumps(payload, default=str),
                    success=1 if success else 0,
                ))
            await retry_on_lock(session.commit)
        except Exception as e:
            await session.rollback()
            logger.error(f"Failed to record alert log for monitor {monitor.id}: {e}")


# Global instance
notification_dispatcher = NotificationDispatcher()
