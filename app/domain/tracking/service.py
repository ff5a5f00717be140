"""Time tracking service - start/stop timers and roll minutes up into task hours"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Milestone, Profile, Task, TimeEntry
from ..bookings.service import get_accessible_booking

logger = logging.getLogger(__name__)


class TimeTrackingService:
    def __init__(self, db: Session):
        self.db = db

    def _accessible_task(self, task_id: str, user: Profile) -> Task:
        task = self.db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        milestone = self.db.query(Milestone).filter(Milestone.id == task.milestone_id).first()
        get_accessible_booking(self.db, milestone.booking_id, user)
        return task

    def _commit(self, action: str):
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}") from e

    def _stop(self, entry: TimeEntry, now: datetime) -> None:
        entry.end_time = now
        entry.duration_minutes = max(0, int((now - entry.start_time).total_seconds() // 60))
        entry.is_active = False

    def refresh_actual_hours(self, task: Task) -> float:
        self.db.flush()
        minutes = (
            self.db.query(func.coalesce(func.sum(TimeEntry.duration_minutes), 0))
            .filter(TimeEntry.task_id == task.id, TimeEntry.is_active.is_(False))
            .scalar()
        )
        task.actual_hours = round(int(minutes or 0) / 60, 2)
        return task.actual_hours

    def start_entry(self, task_id: str, user: Profile, description: Optional[str] = None) -> TimeEntry:
        """Open a timer on a task, closing any timer the user still has running"""
        task = self._accessible_task(task_id, user)
        now = datetime.utcnow()

        running = (
            self.db.query(TimeEntry)
            .filter(TimeEntry.user_id == user.id, TimeEntry.is_active.is_(True))
            .all()
        )
        touched_tasks = set()
        for entry in running:
            self._stop(entry, now)
            touched_tasks.add(entry.task_id)
            logger.info(f"⏹️ Auto-stopped time entry {entry.id} for user {user.id}")
        for other_id in touched_tasks:
            other = self.db.query(Task).filter(Task.id == other_id).first()
            if other:
                self.refresh_actual_hours(other)

        entry = TimeEntry(
            task_id=task.id,
            user_id=user.id,
            start_time=now,
            description=description,
            is_active=True,
        )
        self.db.add(entry)
        self._commit("start time entry")
        self.db.refresh(entry)
        logger.info(f"⏱️ Time entry {entry.id} started on task {task.id}")
        return entry

    def stop_entry(self, entry_id: str, user: Profile) -> TimeEntry:
        entry = self.db.query(TimeEntry).filter(TimeEntry.id == entry_id).first()
        if not entry or (entry.user_id != user.id and user.role != "admin"):
            raise HTTPException(status_code=404, detail="Time entry not found")
        if not entry.is_active:
            raise HTTPException(status_code=400, detail="Time entry is not running")

        self._stop(entry, datetime.utcnow())
        task = self.db.query(Task).filter(Task.id == entry.task_id).first()
        self.refresh_actual_hours(task)
        self._commit("stop time entry")
        self.db.refresh(entry)
        logger.info(f"⏹️ Time entry {entry.id} stopped after {entry.duration_minutes} min")
        return entry

    def list_entries(self, task_id: str, user: Profile) -> dict:
        task = self._accessible_task(task_id, user)
        entries = (
            self.db.query(TimeEntry)
            .filter(TimeEntry.task_id == task.id)
            .order_by(TimeEntry.start_time.desc())
            .all()
        )
        return {"task_id": task.id, "actual_hours": task.actual_hours or 0.0, "entries": entries}
