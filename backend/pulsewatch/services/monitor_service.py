"""Monitor service - monitor lifecycle owned by a user."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Check, Monitor

logger = logging.getLogger(__name__)

# Status fields belong to the state machine, not to the owner
EDITABLE_FIELDS = ("name", "url", "check_interval_minutes")


class MonitorService:
    """Create, edit, list and delete monitors on behalf of their owner."""

    async def create_monitor(
        self,
        session: AsyncSession,
        owner_id: int,
        name: str,
        url: str,
        check_interval_minutes: int,
    ) -> Monitor:
        """New monitors start pending and are picked up by the next tick."""
        if check_interval_minutes < 1:
            raise ValueError("check_interval_minutes must be at least 1")

        monitor = Monitor(
            owner_id=owner_id,
            name=name,
            url=url,
            check_interval_minutes=check_interval_minutes,
            status="pending",
            last_checked_at=None,
            last_status_change_at=None,
        )
        session.add(monitor)
        await session.flush()
        logger.info(f"Created monitor {monitor.id} ({name}) for user {owner_id}")
        return monitor

    async def get_for_owner(self, session: AsyncSession, owner_id: int, monitor_id: int) -> Optional[Monitor]:
        result = await session.execute(
            select(Monitor).where(Monitor.id == monitor_id, Monitor.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def list_for_owner(self, session: AsyncSession, owner_id: int) -> List[Monitor]:
        result = await session.execute(
            select(Monitor).where(Monitor.owner_id == owner_id).order_by(Monitor.name)
        )
        return list(result.scalars().all())

    async def update_monitor(self, session: AsyncSession, monitor: Monitor, changes: dict) -> Monitor:
        """Apply owner edits. A new interval applies from the next tick."""
        interval = changes.get("check_interval_minutes")
        if interval is not None and interval < 1:
            raise ValueError("check_interval_minutes must be at least 1")

        for field in EDITABLE_FIELDS:
            if changes.get(field) is not None:
                setattr(monitor, field, changes[field])
        await session.flush()
        return monitor

    async def delete_monitor(self, session: AsyncSession, monitor: Monitor):
        """Delete a monitor along with its check history and alert log."""
        await session.delete(monitor)
        await session.flush()
        logger.info(f"Deleted monitor {monitor.id} ({monitor.name})")

    async def recent_checks(self, session: AsyncSession, monitor_id: int, limit: int = 50) -> List[Check]:
        result = await session.execute(
            select(Check)
            .where(Check.monitor_id == monitor_id)
            .order_by(Check.checked_at.desc(), Check.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


# Global instance
monitor_service = MonitorService()
