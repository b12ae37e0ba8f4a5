"""Status transitioner - the monitor up/down state machine.

States are ``pending``, ``up`` and ``down``. ``pending`` is left for good on
the first recorded check; afterwards a monitor cycles between ``up`` and
``down`` for its whole lifetime.

A single failed probe is enough to flip ``up`` to ``down``: there is no
consecutive-failure threshold.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Check, Monitor
from ..utils.db_utils import retry_on_lock
from .recorder import SUCCESS

logger = logging.getLogger(__name__)

PENDING = "pending"
UP = "up"
DOWN = "down"


class MonitorNotFoundError(Exception):
    """The monitor row disappeared between scheduling and checking."""


@dataclass(frozen=True)
class Transition:
    """Result of feeding one check into the state machine."""
    previous_status: str
    new_status: str
    did_transition: bool
    notify: bool

    @property
    def direction(self) -> Optional[str]:
        """``down`` or ``up`` when the status changed, else None."""
        return self.new_status if self.did_transition else None


@dataclass
class StatusUpdate:
    """What ``StatusTransitioner.transition`` did to a monitor row."""
    monitor: Monitor
    transition: Transition
    down_since: Optional[datetime] = None  # Previous status change time, used for downtime
    stale: bool = False


def apply(current_status: str, check_status: str) -> Transition:
    """Pure transition function.

    Leaving ``pending`` always counts as a transition, but only landing on
    ``down`` is worth a notification: a monitor that was never confirmed
    down gets no "recovered" alert.
    """
    new_status = UP if check_status == SUCCESS else DOWN

    if current_status == PENDING:
        return Transition(
            previous_status=current_status,
            new_status=new_status,
            did_transition=True,
            notify=new_status == DOWN,
        )

    changed = new_status != current_status
    return Transition(
        previous_status=current_status,
        new_status=new_status,
        did_transition=changed,
        notify=changed,
    )


class MonitorLocks:
    """Per-monitor asyncio locks, dropped again once nobody holds or waits."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, monitor_id: int):
        lock = self._locks.get(monitor_id)
        if lock is None:
            lock = self._locks[monitor_id] = asyncio.Lock()
        self._users[monitor_id] = self._users.get(monitor_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[monitor_id] -= 1
            if self._users[monitor_id] == 0:
                del self._users[monitor_id]
                del self._locks[monitor_id]

    def __len__(self) -> int:
        return len(self._locks)


class StatusTransitioner:
    """Applies checks to monitor rows one at a time per monitor."""

    def __init__(self):
        self.locks = MonitorLocks()

    async def transition(
        self,
        session: AsyncSession,
        monitor_id: int,
        check: Check,
    ) -> StatusUpdate:
        """Read-modify-write the monitor's status fields and commit.

        Serialized per monitor in-process with a lock and across processes
        with a row lock (PostgreSQL), so the status read here is the status
        that gets overwritten. The pending Check row in ``session`` is
        committed in the same transaction.
        """
        async with self.locks.hold(monitor_id):
            result = await session.execute(
                select(Monitor)
                .where(Monitor.id == monitor_id)
                .with_for_update(key_share=True)
                .execution_options(populate_existing=True)
            )
            monitor = result.scalar_one_or_none()
            if monitor is None:
                raise MonitorNotFoundError(f"Monitor {monitor_id} not found")

            down_since = monitor.last_status_change_at

            # An older probe finishing late must not roll the state back
            if monitor.last_checked_at is not None and check.checked_at < monitor.last_checked_at:
                logger.info(
                    f"Ignoring stale check {check.id} for monitor {monitor_id} "
                    f"(checked_at={check.checked_at}, last_checked_at={monitor.last_checked_at})"
                )
                await retry_on_lock(session.commit)
                unchanged = Transition(monitor.status, monitor.status, False, False)
                return StatusUpdate(monitor=monitor, transition=unchanged, down_since=down_since, stale=True)

            transition = apply(monitor.status, check.status)

            monitor.last_checked_at = check.checked_at
            if transition.did_transition:
                monitor.status = transition.new_status
                monitor.last_status_change_at = check.checked_at
                logger.info(
                    f"Monitor {monitor.name} ({monitor_id}): "
                    f"{transition.previous_status} -> {transition.new_status}"
                )

            await retry_on_lock(session.commit)

        return StatusUpdate(monitor=monitor, transition=transition, down_since=down_since)


# Global instance
status_transitioner = StatusTransitioner()
