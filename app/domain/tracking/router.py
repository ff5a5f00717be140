"""Time tracking router"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import TaskTimeResponse, TimeEntryResponse, TimeEntryStart
from .service import TimeTrackingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Time Tracking"])


def get_tracking_service(db: Session = Depends(get_db)) -> TimeTrackingService:
    return TimeTrackingService(db)


@router.post("/tasks/{task_id}/time/start", response_model=TimeEntryResponse, status_code=201)
async def start_time_entry(
    task_id: str,
    data: Optional[TimeEntryStart] = Body(None),
    current_user: Profile = Depends(get_current_user),
    service: TimeTrackingService = Depends(get_tracking_service),
):
    """Start a timer on a task (stops the user's other running timers)"""
    return service.start_entry(task_id, current_user, data.description if data else None)


@router.post("/time-entries/{entry_id}/stop", response_model=TimeEntryResponse)
async def stop_time_entry(
    entry_id: str,
    current_user: Profile = Depends(get_current_user),
    service: TimeTrackingService = Depends(get_tracking_service),
):
    return service.stop_entry(entry_id, current_user)


@router.get("/tasks/{task_id}/time", response_model=TaskTimeResponse)
async def list_time_entries(
    task_id: str,
    current_user: Profile = Depends(get_current_user),
    service: TimeTrackingService = Depends(get_tracking_service),
):
    return service.list_entries(task_id, current_user)


__all__ = ["router"]
