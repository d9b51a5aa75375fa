"""
Room availability and room-change request APIs.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from auth.dependencies import get_db_session, get_current_student, require_admin, require_any_role
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from database.models import RoomChangeRequest, Student
from services.audit_service import AuditAction, AuditService
from services.room_change_service import RoomChangeService, normalize_room


router = APIRouter(prefix="/api/rooms", tags=["rooms"])
admin_router = APIRouter(prefix="/api/admin/room-change-requests", tags=["rooms"])


class RoomChangeCreate(BaseModel):
    """Request a move to another room."""
    preferredRoom: str
    reason: str


class RoomChangeDecision(BaseModel):
    """approved (or accepted) / rejected."""
    status: str


def request_to_dict(req: RoomChangeRequest) -> dict:
    return {
        "requestId": req.request_id,
        "studentId": req.student_id,
        "rollNo": req.roll_no,
        "fullName": req.full_name,
        "currentRoom": req.current_room,
        "preferredRoom": req.preferred_room,
        "reason": req.reason,
        "status": req.status.value,
        "raisedAt": req.raised_at.isoformat() if req.raised_at else None,
        "closedAt": req.closed_at.isoformat() if req.closed_at else None,
    }


@router.get("/availability")
async def check_availability(
    room: str = Query(..., min_length=1),
    identity: Identity = Depends(require_any_role),
    db: Session = Depends(get_db_session)
):
    """Whether a room is currently free. Advisory only; submit re-checks."""
    try:
        return {"room": normalize_room(room), "available": RoomChangeService.check_availability(db, room)}
    except HostelError as e:
        raise to_http_exception(e)


@router.post("/change-requests", status_code=status.HTTP_201_CREATED)
async def submit_change_request(
    body: RoomChangeCreate,
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    """Reserve a room with a pending request. 409 if the room was taken meanwhile."""
    try:
        req = RoomChangeService.submit(db, student, body.preferredRoom, body.reason)
    except HostelError as e:
        raise to_http_exception(e)
    return {"success": True, "request": request_to_dict(req)}


@router.get("/change-requests/mine")
async def list_my_change_requests(
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    return [request_to_dict(r) for r in RoomChangeService.list_for(db, student.student_id)]


@admin_router.get("")
async def list_change_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """All room-change requests, newest first."""
    try:
        return [request_to_dict(r) for r in RoomChangeService.list_all(db, status=status_filter)]
    except HostelError as e:
        raise to_http_exception(e)


@admin_router.patch("/{request_id}")
async def decide_change_request(
    request_id: int,
    body: RoomChangeDecision,
    request: Request,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Approve or reject a pending request; approval moves the student."""
    try:
        req = RoomChangeService.decide(db, request_id, body.status)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.ROOM_CHANGE_DECISION,
        actor_email=identity.email,
        resource_type="room_change_request",
        resource_id=req.request_id,
        details={"status": req.status.value, "preferred_room": req.preferred_room},
    )
    return {"success": True, "request": request_to_dict(req)}
