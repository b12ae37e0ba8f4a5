"""Heartbeat recorder - lets external observers see that the scheduler is alive."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import async_session
from ..models import Heartbeat
from ..models.heartbeat import SCHEDULER_HEARTBEAT_KEY
from ..utils.clock import utcnow
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class HeartbeatRecorder:
    """Service for writing and reading the scheduler heartbeat."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        key: str = SCHEDULER_HEARTBEAT_KEY,
    ):
        self.session_factory = session_factory or async_session
        self.key = key

    async def beat(self, now: Optional[datetime] = None) -> bool:
        """Record the current time. Failures are logged, never raised."""
        now = now or utcnow()
        try:
            async with self.session_factory() as session:
                row = await session.get(Heartbeat, self.key)
                if row is None:
                    session.add(Heartbeat(key=self.key, beat_at=now))
                else:
                    row.beat_at = now
                await retry_on_lock(session.commit)
            return True
        except Exception as e:
            logger.error(f"Failed to write heartbeat '{self.key}': {e}")
            return False

    async def last_beat(self) -> Optional[datetime]:
        async with self.session_factory() as session:
            row = await session.get(Heartbeat, self.key)
            return row.beat_at if row else None

    async def is_stale(self, max_age_seconds: Optional[int] = None, now: Optional[datetime] = None) -> bool:
        """True if no heartbeat was written within ``max_age_seconds``."""
        if max_age_seconds is None:
            max_age_seconds = settings.heartbeat_stale_seconds
        last = await self.last_beat()
        if last is None:
            return True
        return ((now or utcnow()) - last).total_seconds() > max_age_seconds


# Global instance
heartbeat_recorder = HeartbeatRecorder()
