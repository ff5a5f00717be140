"""Audit trail - append-only log of mutations"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    details: Optional[dict] = None,
) -> AuditLog:
    """Add an audit entry to the current session (committed by the caller)"""
    entry = AuditLog(
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details or {},
    )
    db.add(entry)
    logger.debug(f"📝 Audit {entity_type}:{entity_id} {action} by {user_id}")
    return entry


def get_audit_logs(
    db: Session,
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
) -> list[AuditLog]:
    """Query the trail. A None user_id means every user's entries."""
    query = db.query(AuditLog)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
