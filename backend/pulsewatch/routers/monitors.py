"""Monitor CRUD API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Monitor
from ..schemas.monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
    CheckResponse,
)
from ..services.check_service import CheckService
from ..services.monitor_service import monitor_service
from ..utils.db_utils import retry_on_lock
from .deps import get_check_service, get_current_user_id

router = APIRouter(prefix="/api/monitors", tags=["monitors"])


async def _get_owned_monitor(db: AsyncSession, user_id: int, monitor_id: int) -> Monitor:
    monitor = await monitor_service.get_for_owner(db, user_id, monitor_id)
    if not monitor:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return monitor


@router.get("", response_model=List[MonitorResponse])
async def list_monitors(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's monitors."""
    return await monitor_service.list_for_owner(db, user_id)


@router.post("", response_model=MonitorResponse, status_code=201)
async def create_monitor(
    monitor: MonitorCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a new monitor. It is checked on the next scheduler tick."""
    db_monitor = await monitor_service.create_monitor(
        db,
        owner_id=user_id,
        name=monitor.name,
        url=monitor.url,
        check_interval_minutes=monitor.check_interval_minutes,
    )
    await retry_on_lock(db.commit)
    await db.refresh(db_monitor)
    return db_monitor


@router.get("/{monitor_id}", response_model=MonitorResponse)
async def get_monitor(
    monitor_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a specific monitor by ID."""
    return await _get_owned_monitor(db, user_id, monitor_id)


@router.patch("/{monitor_id}", response_model=MonitorResponse)
async def update_monitor(
    monitor_id: int,
    update: MonitorUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Update name, URL or check interval."""
    monitor = await _get_owned_monitor(db, user_id, monitor_id)
    await monitor_service.update_monitor(db, monitor, update.model_dump(exclude_unset=True))
    await retry_on_lock(db.commit)
    await db.refresh(monitor)
    return monitor


@router.delete("/{monitor_id}", status_code=204)
async def delete_monitor(
    monitor_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a monitor and its history."""
    monitor = await _get_owned_monitor(db, user_id, monitor_id)
    await monitor_service.delete_monitor(db, monitor)
    await retry_on_lock(db.commit)
    return Response(status_code=204)


@router.get("/{monitor_id}/checks", response_model=List[CheckResponse])
async def list_checks(
    monitor_id: int,
    limit: int = Query(50, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Most recent checks first."""
    await _get_owned_monitor(db, user_id, monitor_id)
    return await monitor_service.recent_checks(db, monitor_id, limit)


@router.post("/{monitor_id}/check", response_model=CheckResponse)
async def run_check_now(
    monitor_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    checks: CheckService = Depends(get_check_service),
):
    """Run the full check pipeline immediately and return the recorded check."""
    await _get_owned_monitor(db, user_id, monitor_id)
    # Release the read transaction before the probe starts
    await db.rollback()
    check = await checks.perform_check(monitor_id)
    if check is None:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return check
