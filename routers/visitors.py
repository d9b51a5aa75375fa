"""
Student visitor request APIs.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from auth.dependencies import get_db_session, get_current_student
from core.errors import HostelError, to_http_exception
from database.models import Student, VisitorRequest
from services.visitor_service import VisitorService


router = APIRouter(prefix="/api/visitors", tags=["visitors"])


class VisitorCreate(BaseModel):
    visitorName: str
    info: str


def visitor_to_dict(visit: VisitorRequest) -> dict:
    def iso(value):
        return value.isoformat() if value else None

    return {
        "requestId": visit.request_id,
        "rollNo": visit.roll_no,
        "hostelBlock": visit.hostel_block,
        "roomNumber": visit.room_number,
        "emergencyContact": visit.emergency_contact,
        "visitorName": visit.visitor_name,
        "info": visit.info,
        "requestedOnTime": iso(visit.requested_on_time),
        "arrivalTime": iso(visit.arrival_time),
        "departureTime": iso(visit.departure_time),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_visitor(
    body: VisitorCreate,
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    try:
        visit = VisitorService.register(db, student, body.visitorName, body.info)
    except HostelError as e:
        raise to_http_exception(e)
    return {"success": True, "request": visitor_to_dict(visit)}


@router.get("/mine")
async def list_my_visitors(
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    return [visitor_to_dict(v) for v in VisitorService.list_for(db, student.student_id)]


@router.delete("/{request_id}")
async def cancel_visitor(
    request_id: int,
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    """Cancel one of your own visitor requests before the visitor arrives."""
    try:
        VisitorService.cancel(db, student.student_id, request_id)
    except HostelError as e:
        raise to_http_exception(e)
    return {"success": True}
