"""
API endpoint for status automation
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_role
from ..cache import invalidate_analytics_cache
from ..database import get_db
from ..models import Profile
from ..services.status_automation import refresh_overdue_statuses

router = APIRouter(prefix="/status", tags=["status"])


class AutomationResult(BaseModel):
    tasks_marked: int
    tasks_cleared: int
    milestones_marked: int
    milestones_cleared: int


@router.post("/automation/run", response_model=AutomationResult)
async def run_status_automation(
    current_user: Profile = Depends(require_role("admin")), db: Session = Depends(get_db)
):
    """
    Manually trigger the overdue refresh
    (normally run hourly by the worker)
    """
    result = refresh_overdue_statuses(db)
    if any(result.values()):
        invalidate_analytics_cache()
    return AutomationResult(**result)
