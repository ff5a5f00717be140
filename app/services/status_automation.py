"""
Automated overdue flags for tasks and milestones
A task or milestone is overdue once its due date has passed while it is
still open (not completed or cancelled).
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Milestone, Task

logger = logging.getLogger(__name__)

OPEN_EXCLUDED = ("completed", "cancelled")


def _refresh(rows, now: datetime, label: str) -> tuple[int, int]:
    marked = cleared = 0
    for row in rows:
        overdue = row.due_date is not None and row.due_date < now and row.status not in OPEN_EXCLUDED
        if overdue and not row.is_overdue:
            row.is_overdue = True
            marked += 1
            logger.info(f"⏰ {label} {row.id} is now overdue")
        elif not overdue and row.is_overdue:
            row.is_overdue = False
            cleared += 1
    return marked, cleared


def refresh_overdue_statuses(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Recompute is_overdue on every task and milestone
    Run as a scheduled job (hourly cron)

    Returns:
        dict: Summary of flags set and cleared
    """
    now = now or datetime.utcnow()
    summary = {
        "tasks_marked": 0,
        "tasks_cleared": 0,
        "milestones_marked": 0,
        "milestones_cleared": 0,
    }

    try:
        tasks = db.query(Task).filter((Task.due_date.isnot(None)) | (Task.is_overdue.is_(True))).all()
        summary["tasks_marked"], summary["tasks_cleared"] = _refresh(tasks, now, "Task")

        milestones = (
            db.query(Milestone)
            .filter((Milestone.due_date.isnot(None)) | (Milestone.is_overdue.is_(True)))
            .all()
        )
        summary["milestones_marked"], summary["milestones_cleared"] = _refresh(
            milestones, now, "Milestone"
        )

        if sum(summary.values()) > 0:
            db.commit()
            logger.info(f"📊 Overdue refresh summary: {summary}")
        else:
            logger.debug("ℹ️ No overdue flag updates needed")

        return summary

    except Exception as e:
        logger.error(f"❌ Error refreshing overdue statuses: {str(e)}")
        db.rollback()
        raise


MILESTONE_TRANSITIONS = {
    "pending": ["in_progress", "completed", "on_hold", "cancelled"],
    "in_progress": ["pending", "completed", "on_hold", "cancelled"],
    "on_hold": ["pending", "in_progress", "cancelled"],
    "rejected": ["in_progress", "pending", "cancelled"],
    "completed": ["in_progress"],  # reopened after review
    "cancelled": [],  # Terminal state
}


def validate_milestone_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if a milestone status transition is allowed

    Args:
        current_status: Current milestone status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    if current_status == new_status:
        return True
    return new_status in MILESTONE_TRANSITIONS.get(current_status, [])
