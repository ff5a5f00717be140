"""Milestone service - Business logic for milestones, tasks and progress rollups"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import invalidate_analytics_cache
from ...models import Booking, Milestone, Profile, Task
from ...services.audit_service import record_audit
from ...services.notification_service import create_notification
from ...services.status_automation import validate_milestone_transition
from ..bookings.service import get_accessible_booking, participant_role
from ..bookings.status_rules import is_terminal
from .progress import (
    calculate_booking_progress,
    is_overdue,
    refresh_booking_rollups,
    round_half_up,
    update_milestone_progress,
)
from .repository import MilestoneRepository
from .schemas import (
    MilestoneApprovalRequest,
    MilestoneCreate,
    MilestoneUpdate,
    ProgressCalculateRequest,
    TaskCreate,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

NOT_STARTED_BOOKING_STATUSES = ("pending", "approved")


class MilestoneService:
    """Service layer for milestone and task business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MilestoneRepository()

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def _writable_booking(self, booking_id: str, user: Profile) -> Booking:
        booking = get_accessible_booking(self.db, booking_id, user)
        if participant_role(booking, user) not in ("provider", "admin"):
            raise HTTPException(status_code=403, detail="Only the provider can manage milestones")
        if is_terminal(booking.status):
            raise HTTPException(
                status_code=400, detail=f"Booking is {booking.status}; milestones can no longer change"
            )
        return booking

    def _writable_milestone(self, milestone_id: str, user: Profile) -> tuple[Milestone, Booking]:
        milestone = self.repo.get_milestone(self.db, milestone_id)
        if not milestone:
            raise HTTPException(status_code=404, detail="Milestone not found")
        return milestone, self._writable_booking(milestone.booking_id, user)

    def _writable_task(self, task_id: str, user: Profile) -> tuple[Task, Milestone, Booking]:
        task = self.repo.get_task(self.db, task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        milestone, booking = self._writable_milestone(task.milestone_id, user)
        return task, milestone, booking

    def _check_assignee(self, booking: Booking, assignee_id: Optional[str]) -> None:
        """Tasks may only be assigned to the booking's client, its provider or an admin"""
        if assignee_id is None:
            return
        assignee = self.db.query(Profile).filter(Profile.id == assignee_id).first()
        if not assignee:
            raise HTTPException(status_code=400, detail="Assignee not found")
        if participant_role(booking, assignee) is None:
            raise HTTPException(status_code=400, detail="Assignee does not take part in this booking")

    def _commit(self, action: str):
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}") from e
        invalidate_analytics_cache()

    # ------------------------------------------------------------------
    # Milestones
    # ------------------------------------------------------------------

    def list_milestones(self, booking_id: str, user: Profile) -> list[Milestone]:
        booking = get_accessible_booking(self.db, booking_id, user)
        return self.repo.list_milestones(self.db, booking.id)

    def add_milestone(self, booking_id: str, data: MilestoneCreate, user: Profile) -> Milestone:
        booking = self._writable_booking(booking_id, user)
        now = datetime.utcnow()

        milestone = self.repo.create_milestone(
            self.db,
            booking_id=booking.id,
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            weight=data.weight,
            status=data.status,
            estimated_hours=data.estimated_hours,
            risk_level=data.risk_level,
            order_index=self.repo.next_milestone_index(self.db, booking.id),
            progress_percentage=0,
            editable=True,
            is_overdue=is_overdue(data.due_date, data.status, now),
            completed_at=now if data.status == "completed" else None,
            start_date=now if data.status == "in_progress" else None,
            created_by=user.id,
        )
        update_milestone_progress(self.db, milestone)
        calculate_booking_progress(self.db, booking)
        record_audit(self.db, user.id, "milestone", milestone.id, "created", {"booking_id": booking.id})
        self._commit("add milestone")
        self.db.refresh(milestone)

        logger.info(f"✅ Milestone {milestone.id} added to booking {booking.id}")
        return milestone

    def update_milestone(self, milestone_id: str, data: MilestoneUpdate, user: Profile) -> Milestone:
        milestone, booking = self._writable_milestone(milestone_id, user)
        if not milestone.editable:
            raise HTTPException(status_code=400, detail="Milestone is not editable")

        now = datetime.utcnow()
        previous_status = milestone.status

        if data.status is not None and not validate_milestone_transition(previous_status, data.status):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot move milestone from {previous_status} to {data.status}",
            )

        self.repo.apply_updates(
            milestone,
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            status=data.status,
            weight=data.weight,
            estimated_hours=data.estimated_hours,
            risk_level=data.risk_level,
        )

        if data.status and data.status != previous_status:
            if data.status == "completed":
                milestone.completed_at = now
            elif previous_status == "completed":
                milestone.completed_at = None

            if data.status == "in_progress":
                milestone.start_date = milestone.start_date or now
                if (
                    booking.approval_status == "approved"
                    and booking.status in NOT_STARTED_BOOKING_STATUSES
                ):
                    logger.info(f"🚀 Booking {booking.id} moved to in_progress by milestone start")
                    booking.status = "in_progress"
                    booking.operational_status = "in_progress"

        milestone.is_overdue = is_overdue(milestone.due_date, milestone.status, now)
        update_milestone_progress(self.db, milestone)
        calculate_booking_progress(self.db, booking)
        record_audit(
            self.db, user.id, "milestone", milestone.id, "updated",
            {"from": previous_status, "to": milestone.status},
        )
        self._commit("update milestone")
        self.db.refresh(milestone)
        return milestone

    def delete_milestone(self, milestone_id: str, user: Profile) -> dict:
        milestone, booking = self._writable_milestone(milestone_id, user)

        self.db.delete(milestone)
        self.db.flush()
        self.repo.renumber_milestones(self.db, booking.id)
        progress = calculate_booking_progress(self.db, booking)
        record_audit(self.db, user.id, "milestone", milestone_id, "deleted", {"booking_id": booking.id})
        self._commit("delete milestone")

        logger.info(f"🗑️ Milestone {milestone_id} deleted from booking {booking.id}")
        return {"message": "Milestone deleted", "booking_progress": progress}

    def reorder_milestones(self, booking_id: str, milestone_ids: list[str], user: Profile) -> list[Milestone]:
        booking = self._writable_booking(booking_id, user)
        existing = {m.id for m in self.repo.list_milestones(self.db, booking.id)}

        if len(milestone_ids) != len(existing) or set(milestone_ids) != existing:
            raise HTTPException(
                status_code=400,
                detail="milestone_ids must list every milestone of the booking exactly once",
            )

        self.repo.renumber_milestones(self.db, booking.id, milestone_ids)
        record_audit(self.db, user.id, "booking", booking.id, "milestones_reordered", {"order": milestone_ids})
        self._commit("reorder milestones")
        return self.repo.list_milestones(self.db, booking.id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(self, milestone_id: str, data: TaskCreate, user: Profile) -> Task:
        milestone, booking = self._writable_milestone(milestone_id, user)
        self._check_assignee(booking, data.assigned_to)
        now = datetime.utcnow()

        task = self.repo.create_task(
            self.db,
            milestone_id=milestone.id,
            title=data.title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
            assigned_to=data.assigned_to,
            order_index=self.repo.next_task_index(self.db, milestone.id),
            is_overdue=is_overdue(data.due_date, data.status, now),
        )
        update_milestone_progress(self.db, milestone)
        calculate_booking_progress(self.db, booking)
        record_audit(self.db, user.id, "task", task.id, "created", {"milestone_id": milestone.id})
        self._commit("add task")
        self.db.refresh(task)
        return task

    def update_task(self, task_id: str, data: TaskUpdate, user: Profile) -> Task:
        task, milestone, booking = self._writable_task(task_id, user)
        if not task.editable:
            raise HTTPException(status_code=400, detail="Task is not editable")
        self._check_assignee(booking, data.assigned_to)

        previous_status = task.status
        self.repo.apply_updates(
            task,
            title=data.title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
            assigned_to=data.assigned_to,
        )
        task.is_overdue = is_overdue(task.due_date, task.status)

        update_milestone_progress(self.db, milestone)
        calculate_booking_progress(self.db, booking)
        record_audit(
            self.db, user.id, "task", task.id, "updated", {"from": previous_status, "to": task.status}
        )
        self._commit("update task")
        self.db.refresh(task)
        return task

    def delete_task(self, task_id: str, user: Profile) -> dict:
        task, milestone, booking = self._writable_task(task_id, user)

        self.db.delete(task)
        update_milestone_progress(self.db, milestone)
        progress = calculate_booking_progress(self.db, booking)
        record_audit(self.db, user.id, "task", task_id, "deleted", {"milestone_id": milestone.id})
        self._commit("delete task")
        return {"message": "Task deleted", "booking_progress": progress}

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def approve_milestone(self, data: MilestoneApprovalRequest, user: Profile) -> dict:
        """Approve or reject a milestone on behalf of the booking's reviewer"""
        milestone = self.repo.get_milestone(self.db, data.milestone_id)
        if not milestone:
            raise HTTPException(status_code=404, detail="Milestone not found")
        booking = get_accessible_booking(self.db, milestone.booking_id, user)

        already_completed = milestone.status == "completed"
        if already_completed and data.action == "reject":
            raise HTTPException(status_code=400, detail="Milestone is already completed")

        if not already_completed:
            if data.action == "approve":
                milestone.status = "completed"
                milestone.completed_at = datetime.utcnow()
            else:
                milestone.status = "rejected"
            milestone.is_overdue = is_overdue(milestone.due_date, milestone.status)
            update_milestone_progress(self.db, milestone)

        approval_status = "approved" if data.action == "approve" else "rejected"
        approval = self.repo.create_approval(
            self.db, milestone.id, user.id, approval_status, data.feedback
        )
        progress = calculate_booking_progress(self.db, booking)

        if user.id != booking.provider_id:
            create_notification(
                self.db,
                booking.provider_id,
                f"milestone_{approval_status}",
                f"Milestone {approval_status}",
                f"'{milestone.title}' was {approval_status}",
                {"booking_id": booking.id, "milestone_id": milestone.id, "feedback": data.feedback},
                priority="high" if data.action == "reject" else "normal",
            )
        record_audit(
            self.db, user.id, "milestone", milestone.id, approval_status, {"feedback": data.feedback}
        )
        self._commit("record milestone approval")
        self.db.refresh(milestone)

        logger.info(f"✅ Milestone {milestone.id} {approval_status} by {user.id}")
        return {
            "milestone": milestone,
            "approval_id": approval.id,
            "approval_status": approval_status,
            "booking_progress": progress,
            "message": f"Milestone {approval_status} successfully",
        }

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def calculate_progress(self, data: ProgressCalculateRequest, user: Profile) -> dict:
        """Recompute rollups for the given booking, milestone and/or task"""
        if not (data.booking_id or data.milestone_id or data.task_id):
            raise HTTPException(
                status_code=400, detail="Provide at least one of booking_id, milestone_id or task_id"
            )

        result: dict = {}

        if data.task_id:
            task = self.repo.get_task(self.db, data.task_id)
            if not task:
                raise HTTPException(status_code=404, detail="Task not found")
            milestone = self.repo.get_milestone(self.db, task.milestone_id)
            booking = get_accessible_booking(self.db, milestone.booking_id, user)
            update_milestone_progress(self.db, milestone)
            calculate_booking_progress(self.db, booking)
            result["task"] = task

        if data.milestone_id:
            milestone = self.repo.get_milestone(self.db, data.milestone_id)
            if not milestone:
                raise HTTPException(status_code=404, detail="Milestone not found")
            booking = get_accessible_booking(self.db, milestone.booking_id, user)
            update_milestone_progress(self.db, milestone)
            calculate_booking_progress(self.db, booking)
            result["milestone"] = milestone

        if data.booking_id:
            booking = get_accessible_booking(self.db, data.booking_id, user)
            refresh_booking_rollups(self.db, booking)
            result["booking"] = booking

        self._commit("calculate progress")

        response = {}
        if "task" in result:
            self.db.refresh(result["task"])
            response["task"] = result["task"]
        if "milestone" in result:
            self.db.refresh(result["milestone"])
            response["milestone"] = result["milestone"]
        if "booking" in result:
            self.db.refresh(result["booking"])
            response["booking"] = {
                "id": result["booking"].id,
                "project_progress": result["booking"].project_progress,
                "status": result["booking"].status,
            }
        return response

    def get_progress_analytics(self, booking_id: str, user: Profile) -> dict:
        booking = get_accessible_booking(self.db, booking_id, user)
        milestones = self.repo.list_milestones(self.db, booking.id)
        now = datetime.utcnow()

        tasks = [t for m in milestones for t in m.tasks]
        completed_milestones = sum(1 for m in milestones if m.status == "completed")
        completed_tasks = sum(1 for t in tasks if t.status == "completed")

        average = 0
        if milestones:
            average = round_half_up(
                Decimal(sum(m.progress_percentage or 0 for m in milestones)) / len(milestones)
            )

        return {
            "booking_id": booking.id,
            "booking_progress": booking.project_progress,
            "booking_status": booking.status,
            "total_milestones": len(milestones),
            "completed_milestones": completed_milestones,
            "total_tasks": len(tasks),
            "completed_tasks": completed_tasks,
            "average_milestone_progress": average,
            "overdue_milestones": sum(1 for m in milestones if is_overdue(m.due_date, m.status, now)),
            "overdue_tasks": sum(1 for t in tasks if is_overdue(t.due_date, t.status, now)),
            "total_estimated_hours": round(sum(t.estimated_hours or 0 for t in tasks), 2),
            "total_actual_hours": round(sum(t.actual_hours or 0 for t in tasks), 2),
        }
