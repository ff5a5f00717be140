"""
Milestone insights and smart booking status

Everything here is plain arithmetic over the booking's milestones and tasks,
recomputed per request.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, Milestone, Profile
from ..bookings.service import get_accessible_booking, participant_role
from ..milestones.progress import is_overdue
from ..milestones.repository import MilestoneRepository

logger = logging.getLogger(__name__)

DEFAULT_DAILY_HOURS = 8
DEFAULT_DAYS_TO_COMPLETE = 30
DAYS_PER_MILESTONE = 7


def calculate_insights(milestones: list[Milestone], now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    tasks = [t for m in milestones for t in m.tasks]

    total_milestones = len(milestones)
    completed_milestones = sum(1 for m in milestones if m.status == "completed")
    in_progress_milestones = sum(1 for m in milestones if m.status == "in_progress")
    overdue_milestones = sum(1 for m in milestones if is_overdue(m.due_date, m.status, now))

    total_tasks = len(tasks)
    completed_tasks = sum(1 for t in tasks if t.status == "completed")
    overdue_tasks = sum(1 for t in tasks if is_overdue(t.due_date, t.status, now))

    completion_rate = completed_milestones / total_milestones * 100 if total_milestones else 0
    task_completion_rate = completed_tasks / total_tasks * 100 if total_tasks else 0

    health_score = 100 - overdue_milestones * 15 - overdue_tasks * 5
    if completion_rate < 50:
        health_score -= 20
    if task_completion_rate < 30:
        health_score -= 15
    if completion_rate > 80:
        health_score += 10
    if task_completion_rate > 70:
        health_score += 10
    health_score = max(0, min(100, health_score))

    return {
        "healthScore": health_score,
        "totalMilestones": total_milestones,
        "completedMilestones": completed_milestones,
        "inProgressMilestones": in_progress_milestones,
        "overdueMilestones": overdue_milestones,
        "totalTasks": total_tasks,
        "completedTasks": completed_tasks,
        "overdueTasks": overdue_tasks,
        "completionRate": round(completion_rate, 2),
        "taskCompletionRate": round(task_completion_rate, 2),
    }


def generate_recommendations(milestones: list[Milestone], insights: dict) -> list[dict]:
    recommendations = []

    if insights["overdueMilestones"] > 0:
        recommendations.append(
            {
                "type": "urgent",
                "title": "Overdue Milestones",
                "description": f"{insights['overdueMilestones']} milestone(s) are overdue",
                "action": "Review and update due dates or reassign resources",
                "priority": "high",
            }
        )
    if insights["overdueTasks"] > 0:
        recommendations.append(
            {
                "type": "warning",
                "title": "Overdue Tasks",
                "description": f"{insights['overdueTasks']} task(s) are overdue",
                "action": "Prioritize and complete overdue tasks",
                "priority": "medium",
            }
        )
    if insights["healthScore"] < 60:
        recommendations.append(
            {
                "type": "info",
                "title": "Project Health Low",
                "description": "Project health score is below optimal",
                "action": "Focus on completing in-progress items and reducing bottlenecks",
                "priority": "high",
            }
        )
    if sum(1 for m in milestones if m.status == "in_progress") > 3:
        recommendations.append(
            {
                "type": "info",
                "title": "Resource Spread",
                "description": "Many milestones in progress simultaneously",
                "action": "Consider focusing on fewer milestones at once",
                "priority": "medium",
            }
        )
    return recommendations


def _days_since_start(milestones: list[Milestone], now: datetime) -> int:
    starts = [m.start_date for m in milestones if m.start_date]
    if not starts:
        return 1
    return max(1, (now - min(starts)).days)


def calculate_predictions(milestones: list[Milestone], now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()

    total_hours = sum(m.estimated_hours or 0 for m in milestones)
    completed_hours = 0.0
    for m in milestones:
        if m.status == "completed":
            completed_hours += m.estimated_hours or 0
        elif m.status == "in_progress":
            completed_hours += (m.estimated_hours or 0) * (m.progress_percentage or 0) / 100
    remaining_hours = total_hours - completed_hours
    completion_rate = completed_hours / total_hours if total_hours else 0

    if completion_rate > 0:
        daily_hours = completed_hours / _days_since_start(milestones, now)
    else:
        daily_hours = DEFAULT_DAILY_HOURS
    days_to_complete = remaining_hours / daily_hours if daily_hours > 0 else DEFAULT_DAYS_TO_COMPLETE

    overdue_count = sum(1 for m in milestones if is_overdue(m.due_date, m.status, now))
    if overdue_count > 2 or completion_rate < 0.3:
        risk_level = "high"
    elif overdue_count > 0 or completion_rate < 0.6:
        risk_level = "medium"
    else:
        risk_level = "low"

    return {
        "estimatedCompletion": now + timedelta(days=days_to_complete),
        "estimatedDaysToComplete": round(days_to_complete, 2),
        "completionRate": round(completion_rate, 4),
        "riskLevel": risk_level,
        "totalEstimatedHours": round(total_hours, 2),
        "completedHours": round(completed_hours, 2),
        "remainingHours": round(remaining_hours, 2),
        "velocity": round(daily_hours, 2),
    }


# ============================================================================
# SMART STATUS
# ============================================================================


def overall_status(booking: Booking, milestones: list[Milestone]) -> str:
    total = len(milestones)
    all_completed = total > 0 and all(m.status == "completed" for m in milestones)
    in_progress = any(m.status == "in_progress" for m in milestones)
    approved = booking.status == "approved" or booking.approval_status == "approved"

    if booking.status in ("cancelled", "declined"):
        return "cancelled"
    if all_completed or booking.status == "completed":
        return "delivered"
    if booking.status == "in_progress" or in_progress:
        return "in_production"
    if approved:
        return "ready_to_launch" if total == 0 else "approved"
    if booking.status in ("pending", "rescheduled"):
        return "pending_review"
    return booking.status or "pending_review"


def current_milestone(milestones: list[Milestone]) -> Optional[Milestone]:
    ordered = sorted(milestones, key=lambda m: m.order_index)
    return next((m for m in ordered if m.status == "in_progress"), None) or next(
        (m for m in ordered if m.status == "pending"), None
    )


def contextual_actions(
    booking: Booking, milestones: list[Milestone], current: Optional[Milestone], progress: int, role: str
) -> list[dict]:
    actions = []
    awaiting_review = (
        booking.status in ("pending", "rescheduled") and booking.approval_status != "approved"
    )
    approved = booking.approval_status == "approved" and booking.status not in (
        "in_progress", "completed", "cancelled", "declined"
    )

    if role == "provider":
        if awaiting_review:
            actions.append({"id": "approve_booking", "label": "Approve Booking", "type": "primary",
                            "action": "approve", "urgent": True})
            actions.append({"id": "decline_booking", "label": "Decline Booking", "type": "danger",
                            "action": "decline"})
        if approved and not milestones:
            actions.append({"id": "create_milestones", "label": "Create Project Plan", "type": "primary",
                            "action": "create_milestones", "urgent": True})
        if current is not None and current.status == "pending":
            actions.append({"id": "start_milestone", "label": f"Start {current.title}", "type": "primary",
                            "action": "start_milestone", "params": {"milestone_id": current.id}})
        if progress >= 100 and booking.status != "completed":
            actions.append({"id": "complete_project", "label": "Mark Project Complete", "type": "success",
                            "action": "complete"})

    if role == "client":
        for m in milestones:
            if m.status == "completed" and not any(a.status == "approved" for a in m.approvals):
                actions.append({"id": f"approve_milestone_{m.id}", "label": f"Approve {m.title}",
                                "type": "primary", "action": "approve_milestone",
                                "params": {"milestone_id": m.id}})
        if booking.status == "in_progress":
            actions.append({"id": "add_feedback", "label": "Provide Feedback", "type": "secondary",
                            "action": "add_feedback"})
        if progress >= 100 and booking.status != "completed":
            actions.append({"id": "final_approval", "label": "Final Project Approval", "type": "success",
                            "action": "final_approval", "urgent": True})

    if role == "admin":
        actions.append({"id": "manage_project", "label": "Manage Project", "type": "primary",
                        "action": "manage_project"})
        if awaiting_review:
            actions.append({"id": "force_approve", "label": "Force Approve", "type": "secondary",
                            "action": "approve"})

    return actions


def booking_risks(milestones: list[Milestone], now: datetime) -> list[dict]:
    risks = []

    overdue = [m for m in milestones if is_overdue(m.due_date, m.status, now)]
    if overdue:
        risks.append({
            "id": "overdue_milestones",
            "type": "deadline",
            "severity": "high",
            "description": f"{len(overdue)} milestone(s) overdue",
            "impact": "Project timeline at risk",
            "mitigation": "Review and adjust milestone deadlines",
        })

    high_risk = [m for m in milestones if m.risk_level in ("high", "critical")]
    if high_risk:
        risks.append({
            "id": "high_risk_milestones",
            "type": "quality",
            "severity": "medium",
            "description": f"{len(high_risk)} high-risk milestone(s)",
            "impact": "Quality and delivery may be affected",
            "mitigation": "Monitor progress closely and provide additional support",
        })

    blocked = [
        m for m in milestones
        if m.status == "pending"
        and any(dep.order_index < m.order_index and dep.status != "completed" for dep in milestones)
    ]
    if blocked:
        risks.append({
            "id": "blocked_dependencies",
            "type": "dependency",
            "severity": "medium",
            "description": f"{len(blocked)} milestone(s) waiting on dependencies",
            "impact": "Progress may be delayed",
            "mitigation": "Complete prerequisite milestones first",
        })

    return risks


def next_action(booking: Booking, milestones: list[Milestone], current: Optional[Milestone]) -> tuple:
    """Returns (description, owner role) of the next step, or (None, None)"""
    if booking.status in ("pending", "rescheduled") and booking.approval_status != "approved":
        return "Provider needs to approve booking", "provider"
    if booking.approval_status == "approved" and not milestones and booking.status != "completed":
        return "Provider needs to create project milestones", "provider"
    if current is not None:
        if current.status == "pending":
            return f'Start working on "{current.title}"', "provider"
        open_tasks = [t for t in current.tasks if t.status != "completed"]
        if open_tasks:
            return f"Complete {len(open_tasks)} remaining task(s)", "provider"
        return f'Mark "{current.title}" as complete', "provider"
    if milestones and all(m.status == "completed" for m in milestones) and booking.status != "completed":
        return "Provide final project approval", "client"
    return None, None


def status_description(status: str, current: Optional[Milestone], progress: int) -> str:
    if status == "pending_review":
        return "Waiting for provider approval to begin project"
    if status == "approved":
        if current is None:
            return "Approved - Project planning in progress"
        return "Approved - Ready to begin project execution"
    if status == "ready_to_launch":
        return "All prerequisites met - Ready to begin development"
    if status == "in_production":
        if current is not None:
            return f'Active - Working on "{current.title}" ({progress}% complete)'
        return f"In Progress - {progress}% complete"
    if status == "delivered":
        return "Completed successfully - All milestones achieved"
    if status == "cancelled":
        return "Project cancelled"
    if status == "on_hold":
        return "Project temporarily on hold"
    return "Status unknown"


def estimated_completion(milestones: list[Milestone], now: datetime) -> Optional[datetime]:
    incomplete = [m for m in milestones if m.status != "completed"]
    if not milestones or not incomplete:
        return None
    return now + timedelta(days=len(incomplete) * DAYS_PER_MILESTONE)


def last_activity(milestones: list[Milestone]) -> Optional[datetime]:
    stamps = [m.updated_at for m in milestones if m.updated_at]
    stamps += [t.updated_at for m in milestones for t in m.tasks if t.updated_at]
    return max(stamps) if stamps else None


class InsightsService:
    """Read-only analytics over a booking's milestones"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MilestoneRepository()

    def get_milestone_insights(self, booking_id: str, user: Profile) -> dict:
        booking = get_accessible_booking(self.db, booking_id, user)
        milestones = self.repo.list_milestones(self.db, booking.id)
        now = datetime.utcnow()

        insights = calculate_insights(milestones, now)
        logger.debug(f"📊 Booking {booking.id} health score {insights['healthScore']}")
        return {
            "insights": insights,
            "recommendations": generate_recommendations(milestones, insights),
            "predictions": calculate_predictions(milestones, now),
            "milestones": milestones,
        }

    def get_smart_status(self, booking_id: str, user: Profile) -> dict:
        booking = get_accessible_booking(self.db, booking_id, user)
        role = participant_role(booking, user)
        milestones = self.repo.list_milestones(self.db, booking.id)
        now = datetime.utcnow()

        status = overall_status(booking, milestones)
        current = current_milestone(milestones)
        progress = booking.project_progress or 0
        action, action_by = next_action(booking, milestones, current)
        tasks = [t for m in milestones for t in m.tasks]

        return {
            "id": booking.id,
            "overall_status": status,
            "current_milestone": current.title if current else None,
            "current_milestone_id": current.id if current else None,
            "progress_percentage": progress,
            "next_action": action,
            "next_action_by": action_by,
            "estimated_completion": estimated_completion(milestones, now),
            "milestones_completed": sum(1 for m in milestones if m.status == "completed"),
            "milestones_total": len(milestones),
            "tasks_completed": sum(1 for t in tasks if t.status == "completed"),
            "tasks_total": len(tasks),
            "last_activity": last_activity(milestones),
            "status_description": status_description(status, current, progress),
            "contextual_actions": contextual_actions(booking, milestones, current, progress, role),
            "risks": booking_risks(milestones, now),
        }
