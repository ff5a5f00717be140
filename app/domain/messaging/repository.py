"""Messaging repository - Database operations for comments and messages"""

from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import Message, MilestoneComment, Profile


class MessagingRepository:
    """Repository for milestone comment and message database operations"""

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def get_comment(db: Session, comment_id: str) -> Optional[MilestoneComment]:
        return db.query(MilestoneComment).filter(MilestoneComment.id == comment_id).first()

    @staticmethod
    def list_comments(db: Session, milestone_id: str) -> list[MilestoneComment]:
        return (
            db.query(MilestoneComment)
            .filter(MilestoneComment.milestone_id == milestone_id)
            .order_by(MilestoneComment.created_at.asc())
            .all()
        )

    @staticmethod
    def create_comment(db: Session, **data) -> MilestoneComment:
        comment = MilestoneComment(**data)
        db.add(comment)
        db.flush()
        return comment

    @staticmethod
    def create_message(db: Session, **data) -> Message:
        message = Message(**data)
        db.add(message)
        db.flush()
        return message

    @staticmethod
    def get_received_message(db: Session, message_id: str, user_id: str) -> Optional[Message]:
        return (
            db.query(Message)
            .filter(Message.id == message_id, Message.receiver_id == user_id)
            .first()
        )

    @staticmethod
    def list_messages(
        db: Session,
        user_id: str,
        booking_id: Optional[str] = None,
        conversation_with: Optional[str] = None,
    ) -> list[Message]:
        """Messages the user sent or received, oldest first"""
        query = db.query(Message).filter(
            or_(Message.sender_id == user_id, Message.receiver_id == user_id)
        )
        if booking_id:
            query = query.filter(Message.booking_id == booking_id)
        if conversation_with:
            query = query.filter(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == conversation_with),
                    and_(Message.sender_id == conversation_with, Message.receiver_id == user_id),
                )
            )
        return query.order_by(Message.created_at.asc()).all()
