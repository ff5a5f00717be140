"""Messaging service - Business logic for milestone comments and booking messages"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Message, MilestoneComment, Profile
from ...services.audit_service import record_audit
from ...services.notification_service import create_notification
from ..bookings.repository import BookingRepository
from ..bookings.service import get_accessible_booking, participant_role
from ..milestones.repository import MilestoneRepository
from .repository import MessagingRepository
from .schemas import CommentCreate, CommentUpdate, MessageCreate

logger = logging.getLogger(__name__)


def display_name(profile: Profile) -> str:
    return profile.full_name or f"User {profile.id[:8]}"


class MessagingService:
    """Service layer for comment threads and direct messages"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MessagingRepository()

    def _commit(self, action: str):
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}") from e

    def _own_comment(self, comment_id: str, user: Profile, allow_admin: bool) -> MilestoneComment:
        comment = self.repo.get_comment(self.db, comment_id)
        if not comment:
            raise HTTPException(status_code=404, detail="Comment not found")
        if comment.created_by != user.id and not (allow_admin and user.role == "admin"):
            raise HTTPException(status_code=403, detail="Only the author can change this comment")
        return comment

    # ------------------------------------------------------------------
    # Milestone comments
    # ------------------------------------------------------------------

    def _accessible_milestone(self, milestone_id: str, user: Profile):
        milestone = MilestoneRepository.get_milestone(self.db, milestone_id)
        if not milestone:
            raise HTTPException(status_code=404, detail="Milestone not found")
        return milestone, get_accessible_booking(self.db, milestone.booking_id, user)

    def list_comments(self, milestone_id: str, user: Profile) -> list[MilestoneComment]:
        milestone, _ = self._accessible_milestone(milestone_id, user)
        return self.repo.list_comments(self.db, milestone.id)

    def add_comment(self, milestone_id: str, data: CommentCreate, user: Profile) -> MilestoneComment:
        milestone, booking = self._accessible_milestone(milestone_id, user)

        if data.parent_id:
            parent = self.repo.get_comment(self.db, data.parent_id)
            if not parent or parent.milestone_id != milestone.id:
                raise HTTPException(status_code=400, detail="Parent comment not found on this milestone")

        comment = self.repo.create_comment(
            self.db,
            milestone_id=milestone.id,
            parent_id=data.parent_id,
            created_by=user.id,
            content=data.content,
            comment_type=data.comment_type,
            created_at=datetime.utcnow(),
        )
        for recipient in {booking.client_id, booking.provider_id} - {user.id}:
            create_notification(
                self.db,
                recipient,
                "milestone_comment",
                "New comment",
                f"New {data.comment_type} on '{milestone.title}' from {display_name(user)}",
                {"booking_id": booking.id, "milestone_id": milestone.id, "comment_id": comment.id},
                priority="high" if data.comment_type == "issue" else "normal",
            )
        record_audit(
            self.db, user.id, "milestone_comment", comment.id, "created", {"milestone_id": milestone.id}
        )
        self._commit("add comment")
        self.db.refresh(comment)

        logger.info(f"💬 Comment {comment.id} added to milestone {milestone.id}")
        return comment

    def update_comment(self, comment_id: str, data: CommentUpdate, user: Profile) -> MilestoneComment:
        comment = self._own_comment(comment_id, user, allow_admin=False)
        comment.content = data.content
        if data.comment_type is not None:
            comment.comment_type = data.comment_type
        comment.updated_at = datetime.utcnow()
        self._commit("update comment")
        self.db.refresh(comment)
        return comment

    def delete_comment(self, comment_id: str, user: Profile) -> dict:
        """Delete a comment and its replies (author or admin)"""
        comment = self._own_comment(comment_id, user, allow_admin=True)
        milestone_id = comment.milestone_id

        self.db.delete(comment)
        record_audit(
            self.db, user.id, "milestone_comment", comment_id, "deleted", {"milestone_id": milestone_id}
        )
        self._commit("delete comment")

        logger.info(f"🗑️ Comment {comment_id} deleted from milestone {milestone_id}")
        return {"message": "Comment deleted"}

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, data: MessageCreate, user: Profile) -> Message:
        receiver = self.repo.get_profile(self.db, data.receiver_id)
        if not receiver:
            raise HTTPException(status_code=404, detail="Receiver not found")

        if data.booking_id:
            booking = BookingRepository.get_booking(self.db, data.booking_id)
            if not booking:
                raise HTTPException(status_code=400, detail="Invalid booking")
            if participant_role(booking, user) is None:
                raise HTTPException(status_code=403, detail="Access denied to this booking")
            if participant_role(booking, receiver) is None:
                raise HTTPException(status_code=400, detail="Receiver does not take part in this booking")

        message = self.repo.create_message(
            self.db,
            sender_id=user.id,
            receiver_id=receiver.id,
            booking_id=data.booking_id,
            subject=data.subject,
            content=data.content,
            is_read=False,
            created_at=datetime.utcnow(),
        )
        sender_name = display_name(user)
        create_notification(
            self.db,
            receiver.id,
            "message",
            "New message",
            f"New message from {sender_name}: {data.subject}",
            {"message_id": message.id, "booking_id": data.booking_id, "sender_name": sender_name},
        )
        self._commit("send message")
        self.db.refresh(message)

        logger.info(f"✉️ Message {message.id} sent from {user.id} to {receiver.id}")
        return message

    def list_messages(
        self,
        user: Profile,
        booking_id: Optional[str] = None,
        conversation_with: Optional[str] = None,
    ) -> list[Message]:
        return self.repo.list_messages(self.db, user.id, booking_id, conversation_with)

    def mark_read(self, message_id: str, user: Profile) -> Message:
        message = self.repo.get_received_message(self.db, message_id, user.id)
        if not message:
            raise HTTPException(status_code=404, detail="Message not found")
        if not message.is_read:
            message.is_read = True
            message.read_at = datetime.utcnow()
            self._commit("mark message read")
            self.db.refresh(message)
        return message
