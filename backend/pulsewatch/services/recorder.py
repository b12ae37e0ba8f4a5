"""Check recorder - classifies probe outcomes and stores them as history."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Check
from ..utils.clock import utcnow
from .probe import Outcome, Responded, Unreachable

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILED = "failed"


@dataclass(frozen=True)
class Classification:
    """Check fields derived from a probe outcome."""
    status: str  # success, failed
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


def is_success_code(status_code: int) -> bool:
    """2xx and 3xx responses count as the endpoint being up."""
    return 200 <= status_code <= 399


def classify(outcome: Outcome) -> Classification:
    """Classify a probe outcome.

    Any HTTP response keeps its status code and timing with no error message;
    transport failures carry only the error message.
    """
    if isinstance(outcome, Responded):
        return Classification(
            status=SUCCESS if is_success_code(outcome.status_code) else FAILED,
            status_code=outcome.status_code,
            response_time_ms=outcome.elapsed_ms,
        )
    if isinstance(outcome, Unreachable):
        return Classification(status=FAILED, error_message=outcome.reason)
    raise TypeError(f"Unknown probe outcome: {outcome!r}")


class CheckRecorder:
    """Persists one Check row per probe."""

    async def record(
        self,
        session: AsyncSession,
        monitor_id: int,
        outcome: Outcome,
        checked_at: datetime,
    ) -> Check:
        """Store the outcome of a probe.

        The row is flushed but not committed; storage errors propagate
        to the caller.
        """
        result = classify(outcome)
        check = Check(
            monitor_id=monitor_id,
            status=result.status,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            error_message=result.error_message,
            checked_at=checked_at,
            created_at=utcnow(),
        )
        session.add(check)
        await session.flush()

        logger.debug(f"Recorded check {check.id} for monitor {monitor_id}: {check.status}")
        return check


# Global instance
check_recorder = CheckRecorder()
