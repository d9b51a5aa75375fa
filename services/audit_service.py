"""
Audit trail for state changes made by admins and guards, and for forced sign-outs.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from database.models import AuditLog


class AuditAction:
    """Action names written to audit_logs.action."""
    FORCED_SIGN_OUT = "forced_sign_out"
    ROLE_ASSIGN = "role_assign"
    STUDENTS_IMPORT = "students_import"
    ROOM_ASSIGN = "room_assign"
    COMPLAINT_TRANSITION = "complaint_transition"
    ROOM_CHANGE_DECISION = "room_change_decision"
    GATE_CHECK_IN = "gate_check_in"
    GATE_CHECK_OUT = "gate_check_out"
    VISITOR_CHECK_IN = "visitor_check_in"
    VISITOR_CHECK_OUT = "visitor_check_out"
    NOTIFICATION_GENERAL = "notification_general"
    NOTIFICATION_EMERGENCY = "notification_emergency"


class AuditService:
    """Writes and reads the audit trail."""

    @staticmethod
    def log_from_request(
        db: Session,
        request: Optional[Request],
        action: str,
        actor_email: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Any = None,
        details: Optional[Dict[str, Any]] = None
    ) -> AuditLog:
        """
        Record an action; client address and user agent are taken from the request.

        The entry is committed on its own so it survives a later failure in the
        same request (e.g. the 403 raised after a forced sign-out).
        """
        entry = AuditLog(
            actor_email=actor_email,
            action=action,
            resource_type=resource_type,
            resource_id=None if resource_id is None else str(resource_id),
            ip_address=request.client.host if request is not None and request.client else None,
            user_agent=request.headers.get("user-agent") if request is not None else None,
            details=details,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def recent(
        db: Session,
        action: Optional[str] = None,
        actor_email: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[AuditLog]:
        """Newest entries first, optionally filtered."""
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if actor_email:
            query = query.filter(AuditLog.actor_email == actor_email.strip().lower())
        if since is not None:
            query = query.filter(AuditLog.created_at >= since)
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
