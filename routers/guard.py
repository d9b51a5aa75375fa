"""
Guard desk APIs: student gate status and visitor check-in/out.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Literal

from auth.dependencies import get_db_session, require_guard
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from routers.visitors import visitor_to_dict
from services.audit_service import AuditAction, AuditService
from services.student_service import StudentService
from services.visitor_service import CHECK_IN, VisitorService


router = APIRouter(prefix="/api/guard", tags=["guard"])


class InStatusUpdate(BaseModel):
    """Gate check-in (true) or check-out (false)."""
    rollNo: str
    inStatus: bool


class VisitorMovement(BaseModel):
    action: Literal["check_in", "check_out"]


@router.get("/status/{roll_no}")
async def get_in_status(
    roll_no: str,
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    try:
        student = StudentService.get_by_roll(db, roll_no)
    except HostelError as e:
        raise to_http_exception(e)
    return {
        "studentId": student.student_id,
        "rollNo": student.roll_no,
        "fullName": student.full_name,
        "department": student.department,
        "batch": student.batch,
        "inStatus": student.in_status,
    }


@router.post("/status")
async def update_in_status(
    body: InStatusUpdate,
    request: Request,
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    try:
        student = StudentService.set_in_status(db, body.rollNo, body.inStatus)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.GATE_CHECK_IN if student.in_status else AuditAction.GATE_CHECK_OUT,
        actor_email=identity.email,
        resource_type="student",
        resource_id=student.student_id,
    )
    return {"success": True, "rollNo": student.roll_no, "inStatus": student.in_status}


@router.get("/visitors")
async def list_visitors(
    pending: bool = Query(False, description="Only visitors who have not left yet"),
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    return [visitor_to_dict(v) for v in VisitorService.list_all(db, pending_only=pending)]


@router.post("/visitors/{request_id}")
async def record_visitor_movement(
    request_id: int,
    body: VisitorMovement,
    request: Request,
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    """Stamp arrival or departure. 409 when out of order or repeated."""
    try:
        visit = VisitorService.record_movement(db, request_id, body.action)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.VISITOR_CHECK_IN if body.action == CHECK_IN else AuditAction.VISITOR_CHECK_OUT,
        actor_email=identity.email,
        resource_type="visitor_request",
        resource_id=visit.request_id,
    )
    return {"success": True, "visitor": visitor_to_dict(visit)}
