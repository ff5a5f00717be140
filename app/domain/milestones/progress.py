"""
Progress rollups for milestones and bookings

Milestone progress is the share of completed tasks; booking progress is the
weight-averaged milestone progress. Both are stored on the rows so list views
do not recompute them, and are refreshed after every milestone/task write.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from ...models import Booking, Milestone, Task

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("completed", "cancelled")


def round_half_up(value) -> int:
    """Round to the nearest integer with .5 going up (Python's round() is banker's)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def milestone_progress(completed: int, total: int, status: Optional[str] = None) -> int:
    if status == "completed":
        return 100
    if not total:
        return 0
    return round_half_up(Decimal(completed) * 100 / Decimal(total))


def weighted_progress(milestones) -> int:
    """Weighted mean of (progress, weight) pairs"""
    total_weight = Decimal(0)
    weighted = Decimal(0)
    for progress, weight in milestones:
        w = Decimal(str(weight if weight is not None else 1))
        total_weight += w
        weighted += Decimal(progress or 0) * w
    if total_weight <= 0:
        return 0
    return round_half_up(weighted / total_weight)


def is_overdue(due_date: Optional[datetime], status: Optional[str], now: Optional[datetime] = None) -> bool:
    if due_date is None or status in CLOSED_STATUSES:
        return False
    return due_date < (now or datetime.utcnow())


def update_milestone_progress(db: Session, milestone: Milestone) -> Milestone:
    """Recount a milestone's tasks and store its progress (no commit)"""
    db.flush()
    total, completed = (
        db.query(
            func.count(Task.id),
            func.coalesce(func.sum(case((Task.status == "completed", 1), else_=0)), 0),
        )
        .filter(Task.milestone_id == milestone.id)
        .one()
    )
    milestone.total_tasks = int(total or 0)
    milestone.completed_tasks = int(completed or 0)
    milestone.progress_percentage = milestone_progress(
        milestone.completed_tasks, milestone.total_tasks, milestone.status
    )
    return milestone


def calculate_booking_progress(db: Session, booking: Booking) -> int:
    """Store and return the weighted milestone progress of a booking (no commit)"""
    db.flush()
    rows = (
        db.query(Milestone.progress_percentage, Milestone.weight)
        .filter(Milestone.booking_id == booking.id)
        .all()
    )
    booking.project_progress = weighted_progress(rows)
    logger.debug(f"📊 Booking {booking.id} progress → {booking.project_progress}%")
    return booking.project_progress


def refresh_booking_rollups(db: Session, booking: Booking) -> int:
    """Recompute every milestone of a booking, then the booking itself"""
    for milestone in db.query(Milestone).filter(Milestone.booking_id == booking.id).all():
        update_milestone_progress(db, milestone)
    return calculate_booking_progress(db, booking)
