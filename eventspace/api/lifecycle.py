"""FastAPI lifecycle endpoints.

GET  /v1/lifecycle/events/{event_id}    — lifecycle status for an event
GET  /v1/lifecycle/scheduler            — dissolution scheduler status
POST /v1/lifecycle/scheduler/trigger    — run one retention sweep now
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from eventspace.api.dependencies import get_current_user_id, get_orchestrator, get_scheduler
from eventspace.lifecycle.orchestrator import LifecycleOrchestrator
from eventspace.lifecycle.scheduler import DissolutionScheduler
from eventspace.models.workspace import LifecycleStatus, SchedulerStatus, SweepReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/lifecycle", tags=["lifecycle"])


@router.get("/events/{event_id}", response_model=LifecycleStatus)
async def get_lifecycle_status(
    event_id: UUID,
    _user_id: UUID = Depends(get_current_user_id),
    orchestrator: LifecycleOrchestrator = Depends(get_orchestrator),
) -> LifecycleStatus:
    return await orchestrator.get_lifecycle_status(event_id)


@router.get("/scheduler", response_model=SchedulerStatus)
async def get_scheduler_status(
    _user_id: UUID = Depends(get_current_user_id),
    scheduler: DissolutionScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    return scheduler.status()


@router.post("/scheduler/trigger", response_model=SweepReport)
async def trigger_sweep(
    _user_id: UUID = Depends(get_current_user_id),
    scheduler: DissolutionScheduler = Depends(get_scheduler),
) -> SweepReport:
    """Run the retention sweep immediately, outside the timer."""
    try:
        return await scheduler.trigger_manual_processing()
    except Exception as exc:
        logger.exception("Manual dissolution sweep failed")
        raise HTTPException(
            status_code=500, detail=f"Dissolution sweep failed: {exc}",
        ) from exc
