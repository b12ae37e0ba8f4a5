"""Check service - runs the probe, record, transition, notify pipeline for one monitor."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import async_session
from ..models import Check, Monitor
from ..utils.clock import utcnow
from .dispatcher import notification_dispatcher, NotificationDispatcher, DispatchResult
from .probe import probe_executor, ProbeExecutor
from .recorder import check_recorder, CheckRecorder
from .transitioner import status_transitioner, StatusTransitioner, StatusUpdate

logger = logging.getLogger(__name__)


class CheckService:
    """Service for performing a full check of a single monitor."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        probe: Optional[ProbeExecutor] = None,
        recorder: Optional[CheckRecorder] = None,
        transitioner: Optional[StatusTransitioner] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session_factory = session_factory or async_session
        self.probe = probe or probe_executor
        self.recorder = recorder or check_recorder
        self.transitioner = transitioner or status_transitioner
        self.dispatcher = dispatcher or notification_dispatcher

    async def perform_check(self, monitor_id: int) -> Optional[Check]:
        """Probe a monitor, store the result and react to a status change.

        Returns None if the monitor no longer exists. Persistence errors
        propagate; notification errors never do.
        """
        # Short read so no transaction stays open during the probe
        async with self.session_factory() as session:
            monitor = await session.get(Monitor, monitor_id)
            if monitor is None:
                logger.warning(f"Monitor {monitor_id} no longer exists, skipping check")
                return None
            name, url = monitor.name, monitor.url

        logger.info(f"Starting monitor check: {name} ({monitor_id}) {url}")

        checked_at = utcnow()
        outcome = await self.probe.probe(url)

        async with self.session_factory() as session:
            check = await self.recorder.record(session, monitor_id, outcome, checked_at)
            update = await self.transitioner.transition(session, monitor_id, check)

            logger.info(
                f"Monitor check completed: {name} ({monitor_id}) check={check.id} "
                f"status={check.status} status_code={check.status_code} "
                f"response_time_ms={check.response_time_ms}"
            )

            if update.transition.notify:
                await self._notify(session, update, check)

        return check

    async def _notify(self, session: AsyncSession, update: StatusUpdate, check: Check) -> DispatchResult:
        """Dispatch alerts for a transition; failures stop here."""
        try:
            return await self.dispatcher.dispatch(
                session,
                update.monitor,
                update.transition.direction,
                check,
                down_since=update.down_since,
            )
        except Exception as e:
            logger.error(
                f"Failed to send notification for monitor {update.monitor.id} "
                f"({update.transition.previous_status} -> {update.transition.new_status}): {e}"
            )
            return DispatchResult()


# Global instance
check_service = CheckService()
