"""Messaging domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_uuid
from ...utils.sanitization import validate_and_sanitize_input

CommentType = Literal["general", "feedback", "question", "issue"]

MAX_CONTENT_LENGTH = 1000
MAX_SUBJECT_LENGTH = 100


def _check_text(v: Optional[str], label: str, max_length: int) -> str:
    cleaned = validate_and_sanitize_input(v, max_length=max_length)
    if not cleaned:
        raise ValueError(f"{label} is required")
    return cleaned


def _check_id(v: Optional[str], label: str) -> Optional[str]:
    if v is not None and not validate_uuid(v):
        raise ValueError(f"{label} must be a UUID")
    return v


class CommentCreate(BaseModel):
    content: str
    comment_type: CommentType = "general"
    parent_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return _check_text(v, "Content", MAX_CONTENT_LENGTH)

    @field_validator("parent_id")
    @classmethod
    def validate_parent(cls, v):
        return _check_id(v, "parent_id")


class CommentUpdate(BaseModel):
    content: str
    comment_type: Optional[CommentType] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return _check_text(v, "Content", MAX_CONTENT_LENGTH)


class CommentResponse(BaseModel):
    id: str
    milestone_id: str
    parent_id: Optional[str] = None
    created_by: str
    content: str
    comment_type: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    receiver_id: str
    subject: str
    content: str
    booking_id: Optional[str] = None

    @field_validator("receiver_id")
    @classmethod
    def validate_receiver(cls, v):
        return _check_id(v, "receiver_id")

    @field_validator("booking_id")
    @classmethod
    def validate_booking(cls, v):
        return _check_id(v, "booking_id")

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v):
        return _check_text(v, "Subject", MAX_SUBJECT_LENGTH)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return _check_text(v, "Content", MAX_CONTENT_LENGTH)


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    booking_id: Optional[str] = None
    subject: str
    content: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
