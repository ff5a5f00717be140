"""Booking router - FastAPI endpoints for bookings"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import BOOKING_CREATE_LIMIT
from ...database import get_db
from ...models import Profile
from ...rate_limiter import create_user_rate_limiter
from .schemas import (
    BookingAction,
    BookingCreate,
    BookingFileResponse,
    BookingListResponse,
    BookingResponse,
)
from .service import BookingService
from .status_rules import DERIVED_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

booking_create_limit = create_user_rate_limiter(
    limit=BOOKING_CREATE_LIMIT, window_seconds=3600, key_prefix="bookings:create"
)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[str] = Query(None, description=f"One of: {', '.join(DERIVED_STATUSES)}"),
    search: Optional[str] = Query(None, max_length=100),
    sort: str = Query("created_at", pattern="^(created_at|updated_at|amount|title)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """List the current user's bookings (admins see all)"""
    return service.list_bookings(current_user, status, search, sort, order, page, page_size)


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: Profile = Depends(booking_create_limit),
    service: BookingService = Depends(get_booking_service),
):
    """Request a booking for an active service"""
    return service.create_booking(data, current_user)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_booking(booking_id, current_user)


# ============================================================================
# WORKFLOW
# ============================================================================


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    data: BookingAction,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Approve, decline, reschedule, start, complete or cancel a booking"""
    return service.apply_action(booking_id, data, current_user)


@router.get("/{booking_id}/files", response_model=list[BookingFileResponse])
async def list_booking_files(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.list_files(booking_id, current_user)


__all__ = ["router"]
