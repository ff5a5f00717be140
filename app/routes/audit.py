from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Profile
from ..services.audit_service import get_audit_logs

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    entity_type: str
    entity_id: str
    action: str
    details: Optional[dict] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@router.get("", response_model=list[AuditLogResponse])
async def list_audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Read the audit trail; admins see everyone's entries, others only their own"""
    user_id = None if current_user.role == "admin" else current_user.id
    return get_audit_logs(db, user_id, entity_type, entity_id, limit)
