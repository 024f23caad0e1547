from typing import Any, Optional
from sqlalchemy.orm import Session
from fastapi import Request
from models import ActivityLog
from config import settings
import logging
import uuid

logger = logging.getLogger(__name__)

def client_ip(request: Optional[Request]) -> str:
    """First hop of the forwarding chain, falling back to the socket peer"""
    if request is None:
        return "unknown"
    for header in ("x-forwarded-for", "x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"

def log_activity(
    db: Session,
    user_id: uuid.UUID,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    details: Optional[Any] = None,
    request: Optional[Request] = None,
) -> Optional[ActivityLog]:
    """
    Append one audit row. Called after the primary mutation has committed.

    Best-effort: a failure here is rolled back and logged, never raised, so the
    already-committed mutation and its response are unaffected.
    """
    if isinstance(details, str):
        details = {"message": details}

    try:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent", "unknown") if request else "unknown",
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        db.rollback()
        logger.warning(f"⚠️ Failed to log activity {action} for {entity_type}:{entity_id}: {str(e)}")
        return None

def list_activity_logs(
    db: Session,
    user_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: Optional[int] = None,
):
    query = db.query(ActivityLog)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if action:
        query = query.filter(ActivityLog.action == action)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(ActivityLog.entity_id == str(entity_id))

    page_size = min(limit or settings.ACTIVITY_LOG_PAGE_SIZE, settings.ACTIVITY_LOG_PAGE_SIZE)
    return query.order_by(ActivityLog.created_at.desc()).limit(page_size).all()
