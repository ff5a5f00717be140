"""Milestone router - FastAPI endpoints for milestones, tasks and progress"""

import asyncio
import logging

from arq import create_pool
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ...worker import get_redis_settings
from ..bookings.service import get_accessible_booking
from .schemas import (
    ApprovalResponse,
    MilestoneApprovalRequest,
    MilestoneCreate,
    MilestoneReorder,
    MilestoneResponse,
    MilestoneUpdate,
    ProgressCalculateRequest,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from .service import MilestoneService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Milestones"])
progress_router = APIRouter(prefix="/progress", tags=["Progress"])

QUEUE_TIMEOUT_SECONDS = 5.0


def get_milestone_service(db: Session = Depends(get_db)) -> MilestoneService:
    """Dependency injection for MilestoneService"""
    return MilestoneService(db)


# ============================================================================
# MILESTONES
# ============================================================================


@router.get("/bookings/{booking_id}/milestones", response_model=list[MilestoneResponse])
async def list_milestones(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Milestones of a booking in display order, with their tasks"""
    return service.list_milestones(booking_id, current_user)


@router.post("/bookings/{booking_id}/milestones", response_model=MilestoneResponse, status_code=201)
async def add_milestone(
    booking_id: str,
    data: MilestoneCreate,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.add_milestone(booking_id, data, current_user)


@router.post("/bookings/{booking_id}/milestones/reorder", response_model=list[MilestoneResponse])
async def reorder_milestones(
    booking_id: str,
    data: MilestoneReorder,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.reorder_milestones(booking_id, data.milestone_ids, current_user)


@router.post("/milestones/approve", response_model=ApprovalResponse)
async def approve_milestone(
    data: MilestoneApprovalRequest,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Approve or reject a milestone"""
    return service.approve_milestone(data, current_user)


@router.patch("/milestones/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    milestone_id: str,
    data: MilestoneUpdate,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.update_milestone(milestone_id, data, current_user)


@router.delete("/milestones/{milestone_id}")
async def delete_milestone(
    milestone_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.delete_milestone(milestone_id, current_user)


# ============================================================================
# TASKS
# ============================================================================


@router.post("/milestones/{milestone_id}/tasks", response_model=TaskResponse, status_code=201)
async def add_task(
    milestone_id: str,
    data: TaskCreate,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.add_task(milestone_id, data, current_user)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.update_task(task_id, data, current_user)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    return service.delete_task(task_id, current_user)


# ============================================================================
# PROGRESS
# ============================================================================


async def enqueue_recalculation(booking_id: str) -> str:
    """Queue a booking recalculation on the worker and return the job id"""
    pool = await asyncio.wait_for(create_pool(get_redis_settings()), timeout=QUEUE_TIMEOUT_SECONDS)
    try:
        job = await asyncio.wait_for(
            pool.enqueue_job("recalculate_progress_task", booking_id), timeout=QUEUE_TIMEOUT_SECONDS
        )
    finally:
        await pool.close()
    if job is None:
        raise RuntimeError(f"Recalculation for booking {booking_id} was not enqueued")
    return job.job_id


@progress_router.post("/calculate")
async def calculate_progress(
    data: ProgressCalculateRequest,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    db: Session = Depends(get_db),
):
    """
    Recompute progress rollups.

    With async=true and a booking_id the booking recalculation is queued on
    the worker instead; falls back to inline calculation if the queue is down.
    """
    if data.run_async and data.booking_id:
        if data.milestone_id or data.task_id:
            raise HTTPException(
                status_code=400, detail="async recalculation accepts only a booking_id"
            )
        booking = get_accessible_booking(db, data.booking_id, current_user)
        try:
            job_id = await enqueue_recalculation(booking.id)
            logger.info(f"📤 Queued progress recalculation for booking {booking.id}: {job_id}")
            return {"queued": True, "jobId": job_id, "booking_id": booking.id}
        except Exception as e:
            logger.warning(f"⚠️ Failed to queue progress job, calculating inline: {e}")

    result = service.calculate_progress(data, current_user)
    response = {"queued": False}
    if "task" in result:
        response["task"] = TaskResponse.model_validate(result["task"])
    if "milestone" in result:
        response["milestone"] = MilestoneResponse.model_validate(result["milestone"])
    if "booking" in result:
        response["booking"] = result["booking"]
    return response


@progress_router.get("/{booking_id}")
async def get_progress(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
):
    """Progress analytics for a booking"""
    return service.get_progress_analytics(booking_id, current_user)


__all__ = ["router", "progress_router"]
