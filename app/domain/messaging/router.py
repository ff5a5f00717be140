"""Messaging router - FastAPI endpoints for milestone comments and messages"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import MESSAGE_SEND_LIMIT
from ...database import get_db
from ...models import Profile
from ...rate_limiter import create_user_rate_limiter
from .schemas import CommentCreate, CommentResponse, CommentUpdate, MessageCreate, MessageResponse
from .service import MessagingService

router = APIRouter(tags=["Messaging"])

message_send_limit = create_user_rate_limiter(
    limit=MESSAGE_SEND_LIMIT, window_seconds=3600, key_prefix="messages:send"
)


def get_messaging_service(db: Session = Depends(get_db)) -> MessagingService:
    return MessagingService(db)


# ============================================================================
# MILESTONE COMMENTS
# ============================================================================


@router.get("/milestones/{milestone_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    milestone_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Comments on a milestone, oldest first; replies carry their parent_id"""
    return service.list_comments(milestone_id, current_user)


@router.post("/milestones/{milestone_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    milestone_id: str,
    data: CommentCreate,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.add_comment(milestone_id, data, current_user)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    data: CommentUpdate,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.update_comment(comment_id, data, current_user)


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.delete_comment(comment_id, current_user)


# ============================================================================
# MESSAGES
# ============================================================================


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    data: MessageCreate,
    current_user: Profile = Depends(message_send_limit),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.send_message(data, current_user)


@router.get("/messages", response_model=list[MessageResponse])
async def list_messages(
    booking_id: Optional[str] = Query(None),
    conversation_with: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Messages the current user sent or received"""
    return service.list_messages(current_user, booking_id, conversation_with)


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def read_message(
    message_id: str,
    current_user: Profile = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.mark_read(message_id, current_user)


__all__ = ["router"]
