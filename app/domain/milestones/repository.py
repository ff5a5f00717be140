"""Milestone repository - Database operations for milestones and tasks"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Milestone, MilestoneApproval, Task


class MilestoneRepository:
    """Repository for milestone and task database operations"""

    @staticmethod
    def get_milestone(db: Session, milestone_id: str) -> Optional[Milestone]:
        return db.query(Milestone).filter(Milestone.id == milestone_id).first()

    @staticmethod
    def get_task(db: Session, task_id: str) -> Optional[Task]:
        return db.query(Task).filter(Task.id == task_id).first()

    @staticmethod
    def list_milestones(db: Session, booking_id: str) -> list[Milestone]:
        return (
            db.query(Milestone)
            .options(selectinload(Milestone.tasks))
            .filter(Milestone.booking_id == booking_id)
            .order_by(Milestone.order_index.asc(), Milestone.created_at.asc())
            .all()
        )

    @staticmethod
    def next_milestone_index(db: Session, booking_id: str) -> int:
        current = (
            db.query(func.max(Milestone.order_index))
            .filter(Milestone.booking_id == booking_id)
            .scalar()
        )
        return 0 if current is None else current + 1

    @staticmethod
    def next_task_index(db: Session, milestone_id: str) -> int:
        current = db.query(func.max(Task.order_index)).filter(Task.milestone_id == milestone_id).scalar()
        return 0 if current is None else current + 1

    @staticmethod
    def create_milestone(db: Session, **data) -> Milestone:
        milestone = Milestone(**data)
        db.add(milestone)
        db.flush()
        return milestone

    @staticmethod
    def create_task(db: Session, **data) -> Task:
        task = Task(**data)
        db.add(task)
        db.flush()
        return task

    @staticmethod
    def apply_updates(row, **updates):
        """COALESCE semantics: None keeps the stored value"""
        for key, value in updates.items():
            if value is not None and hasattr(row, key):
                setattr(row, key, value)
        return row

    @staticmethod
    def renumber_milestones(db: Session, booking_id: str, ordered_ids: Optional[list[str]] = None) -> None:
        """Rewrite order_index as 0..n-1, following ordered_ids when given"""
        milestones = MilestoneRepository.list_milestones(db, booking_id)
        if ordered_ids is not None:
            by_id = {m.id: m for m in milestones}
            milestones = [by_id[mid] for mid in ordered_ids]
        for index, milestone in enumerate(milestones):
            milestone.order_index = index

    @staticmethod
    def create_approval(db: Session, milestone_id: str, user_id: str, status: str, comment: Optional[str]):
        approval = MilestoneApproval(
            milestone_id=milestone_id, user_id=user_id, status=status, comment=comment
        )
        db.add(approval)
        return approval
