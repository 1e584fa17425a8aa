"""Monitor CRUD and on-demand check API endpoints."""
import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_publisher, get_scheduler, get_store
from ..schemas.monitor import Monitor, MonitorCreate, RemoveResponse
from ..services.publisher import UpdatePublisher
from ..services.scheduler import SchedulerService
from ..services.state_store import DuplicateMonitorError, StateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["monitors"])


@router.get("/monitors", response_model=List[dict])
async def list_monitors(store: StateStore = Depends(get_store)):
    """List all monitors with their health state and history."""
    return [m.to_dict() for m in await store.read()]


@router.post("/monitors", response_model=dict)
async def create_monitor(
    payload: MonitorCreate,
    store: StateStore = Depends(get_store),
    publisher: UpdatePublisher = Depends(get_publisher),
):
    """Create a new monitor. It is probed on the next scheduler tick."""
    monitor = Monitor(
        id=payload.id or uuid.uuid4().hex[:12],
        name=payload.name,
        url=payload.url,
        type=payload.type,
        interval=payload.interval,
    )
    try:
        await store.add(monitor)
    except DuplicateMonitorError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Monitor created id={monitor.id} name={monitor.name} type={monitor.type}")
    await publisher.publish_latest()
    return monitor.to_dict()


@router.get("/monitors/{monitor_id}", response_model=dict)
async def get_monitor(monitor_id: str, store: StateStore = Depends(get_store)):
    """Get a specific monitor by ID."""
    for monitor in await store.read():
        if monitor.id == monitor_id:
            return monitor.to_dict()
    raise HTTPException(status_code=404, detail="Monitor not found")


@router.delete("/monitors/{monitor_id}", response_model=RemoveResponse)
async def delete_monitor(
    monitor_id: str,
    store: StateStore = Depends(get_store),
    publisher: UpdatePublisher = Depends(get_publisher),
):
    """Delete a monitor. Deleting an unknown id removes nothing."""
    removed = await store.remove(monitor_id)
    if removed:
        logger.info(f"Monitor deleted id={monitor_id}")
    await publisher.publish_latest()
    return RemoveResponse(removed=removed)


@router.post("/check-now", response_model=List[dict])
async def check_now(scheduler: SchedulerService = Depends(get_scheduler)):
    """Probe every monitor immediately, regardless of intervals."""
    monitors = await scheduler.run_check_pass(force_all=True)
    return [m.to_dict() for m in monitors]
