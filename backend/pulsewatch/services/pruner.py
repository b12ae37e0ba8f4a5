"""Retention pruner - deletes check history older than the retention window."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import async_session
from ..models import Check
from ..utils.clock import utcnow
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


def retention_cutoff(retention_days: int, now: datetime) -> Optional[datetime]:
    """Checks strictly older than the cutoff are pruned; None means keep everything."""
    if retention_days <= 0:
        return None
    return now - timedelta(days=retention_days)


class RetentionPruner:
    """Service for bulk deletion of old checks."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session

    async def prune(
        self,
        retention_days: Optional[int] = None,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> int:
        """Delete checks older than the retention window.

        Returns the number of checks deleted (or that would be deleted
        with ``dry_run``). Monitor rows are never touched.
        """
        if retention_days is None:
            retention_days = settings.check_retention_days

        cutoff = retention_cutoff(retention_days, now or utcnow())
        if cutoff is None:
            logger.info("Check retention is set to 0. No checks will be deleted.")
            return 0

        async with self.session_factory() as session:
            if dry_run:
                result = await session.execute(
                    select(func.count()).select_from(Check).where(Check.checked_at < cutoff)
                )
                count = result.scalar_one()
                logger.info(f"DRY RUN: would delete {count} check record(s) older than {cutoff}")
                return count

            result = await session.execute(
                delete(Check).where(Check.checked_at < cutoff)
            )
            await retry_on_lock(session.commit)

        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} check record(s) older than {retention_days} days (before {cutoff})")
        return deleted


# Global instance
retention_pruner = RetentionPruner()
