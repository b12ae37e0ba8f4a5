"""Health endpoint with scheduler liveness."""
from fastapi import APIRouter

from ..config import settings
from ..schemas.status import HealthResponse
from ..services.heartbeat import heartbeat_recorder

router = APIRouter(tags=["status"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Report health; stale heartbeat means the scheduler loop stopped."""
    last_beat = await heartbeat_recorder.last_beat()
    stale = await heartbeat_recorder.is_stale()
    degraded = settings.scheduler_enabled and stale
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        scheduler_enabled=settings.scheduler_enabled,
        heartbeat_at=last_beat,
        heartbeat_stale=stale,
    )
