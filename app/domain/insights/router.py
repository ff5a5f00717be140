"""Insights router - milestone analytics and smart booking status"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ..milestones.schemas import MilestoneResponse
from .service import InsightsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Insights"])


def get_insights_service(db: Session = Depends(get_db)) -> InsightsService:
    """Dependency injection for InsightsService"""
    return InsightsService(db)


@router.get("/milestones/insights")
async def get_milestone_insights(
    booking_id: str = Query(..., description="Booking to analyse"),
    current_user: Profile = Depends(get_current_user),
    service: InsightsService = Depends(get_insights_service),
):
    """Health score, recommendations and predictions for a booking's milestones"""
    result = service.get_milestone_insights(booking_id, current_user)
    result["milestones"] = [MilestoneResponse.model_validate(m) for m in result["milestones"]]
    return result


@router.get("/bookings/{booking_id}/smart-status")
async def get_smart_status(
    booking_id: str,
    current_user: Profile = Depends(get_current_user),
    service: InsightsService = Depends(get_insights_service),
):
    return service.get_smart_status(booking_id, current_user)


__all__ = ["router"]
