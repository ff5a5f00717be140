"""Analytics router - dashboard aggregates"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .service import AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    """Dependency injection for AnalyticsService"""
    return AnalyticsService(db)


@router.get("/bookings/summary")
async def get_booking_summary(
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Dashboard counters; falls back to zeros if the query fails"""
    return service.get_summary(current_user)


@router.get("/bookings/trends")
async def get_booking_trends(
    months: int = Query(6, ge=1, le=24),
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return service.get_trends(current_user, months)


@router.get("/services/{service_id}")
async def get_service_analytics(
    service_id: str,
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    return service.get_service_analytics(service_id, current_user)


__all__ = ["router"]
