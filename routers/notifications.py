"""
Notification APIs: admin broadcasts, guard emergency announcements, history.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import List

from auth.dependencies import get_db_session, require_admin, require_any_role, require_guard
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from database.models import AppUser, Notification, NotificationCategory, Student
from services.audit_service import AuditAction, AuditService
from services.notification_service import NotificationService


router = APIRouter(prefix="/api/notifications", tags=["notifications"])
guard_router = APIRouter(prefix="/api/guard/emergency-announcement", tags=["notifications"])


class NotificationCreate(BaseModel):
    """Send a notification to a list of addresses."""
    subject: str
    message: str
    recipients: List[EmailStr]


def notification_to_dict(notification: Notification) -> dict:
    return {
        "notificationId": notification.notification_id,
        "subject": notification.subject,
        "message": notification.message,
        "recipients": notification.recipients,
        "category": notification.category.value,
        "senderEmail": notification.sender_email,
        "sentAt": notification.sent_at.isoformat() if notification.sent_at else None,
    }


def _send(
    body: NotificationCreate,
    category: NotificationCategory,
    identity: Identity,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session,
) -> dict:
    """Log the notification, then hand delivery to a background task."""
    try:
        notification = NotificationService.record(
            db,
            body.subject,
            body.message,
            [str(r) for r in body.recipients],
            category=category,
            sender_email=identity.email,
        )
    except HostelError as e:
        raise to_http_exception(e)

    background_tasks.add_task(
        NotificationService.deliver,
        getattr(request.app.state, "mail", None),
        notification.recipients.split(", "),
        notification.subject,
        notification.message,
    )
    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.NOTIFICATION_EMERGENCY if category == NotificationCategory.EMERGENCY else AuditAction.NOTIFICATION_GENERAL,
        actor_email=identity.email,
        resource_type="notification",
        resource_id=notification.notification_id,
    )
    return {"success": True, "notification": notification_to_dict(notification)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_notification(
    body: NotificationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    return _send(body, NotificationCategory.GENERAL, identity, request, background_tasks, db)


@router.get("")
async def list_notifications(
    identity: Identity = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    """Notification history, most recent first."""
    return [notification_to_dict(n) for n in NotificationService.list_all(db)]


@guard_router.post("", status_code=status.HTTP_201_CREATED)
async def send_emergency_announcement(
    body: NotificationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    return _send(body, NotificationCategory.EMERGENCY, identity, request, background_tasks, db)


@guard_router.get("/recipients")
async def list_announcement_recipients(
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    """Students with a role assignment, for picking announcement recipients."""
    rows = (
        db.query(AppUser.email, AppUser.role, Student.hostel_block, Student.department)
        .join(Student, Student.email == AppUser.email)
        .order_by(AppUser.id.asc())
        .all()
    )
    return [
        {
            "email": email,
            "role": getattr(role, "value", role),
            "hostel": hostel,
            "department": department,
        }
        for email, role, hostel, department in rows
    ]
