"""
Admin dashboard analytics and audit trail.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from auth.dependencies import get_db_session, require_admin
from auth.security import Identity
from database.models import AuditLog
from services.audit_service import AuditService
from services.feedback_service import AnalyticsService


router = APIRouter(prefix="/api/admin", tags=["dashboards"])


def audit_to_dict(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "timestamp": entry.created_at.isoformat() if entry.created_at else None,
        "actorEmail": entry.actor_email,
        "action": entry.action,
        "resourceType": entry.resource_type,
        "resourceId": entry.resource_id,
        "ip": entry.ip_address,
        "details": entry.details,
    }


@router.get("/analytics")
async def admin_analytics(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Occupancy per hostel block and complaint counts per status.
    Admin only.
    """
    return AnalyticsService.summary(db)


@router.get("/audit-logs")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    actor: Optional[str] = Query(None),
    from_date: Optional[datetime] = Query(None, alias="from"),
    limit: int = Query(50, ge=1, le=200),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Recent audited actions, newest first."""
    entries = AuditService.recent(db, action=action, actor_email=actor, since=from_date, limit=limit)
    return [audit_to_dict(e) for e in entries]
