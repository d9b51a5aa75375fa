"""
Student record APIs: own profile, guard lookup, admin provisioning and room assignment.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi_mail import MessageType
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List

from auth.dependencies import get_db_session, get_current_student, require_admin, require_guard
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from core.logger import logger
from database.models import Student
from services.audit_service import AuditAction, AuditService
from services.notification_service import NotificationService
from services.student_service import StudentService
import config


router = APIRouter(prefix="/api/students", tags=["students"])
admin_router = APIRouter(prefix="/api/admin/students", tags=["students"])


# Request/Response Models
class StudentImportRequest(BaseModel):
    """Bulk import students from CSV text."""
    csv: str


class ImportResponse(BaseModel):
    """Import response."""
    imported: int
    errors: Optional[List[dict]] = None


class RoomAssignment(BaseModel):
    """Assign (or with an empty room, vacate) a student's room."""
    roomNumber: Optional[str] = None
    hostelBlock: Optional[str] = None


def student_to_dict(student: Student) -> dict:
    return {
        "studentId": student.student_id,
        "rollNo": student.roll_no,
        "email": student.email,
        "fullName": student.full_name,
        "department": student.department,
        "batch": student.batch,
        "roomNumber": student.room_number,
        "hostelBlock": student.hostel_block,
        "feesPaid": student.fees_paid,
        "emergencyContact": student.emergency_contact,
        "inStatus": student.in_status,
        "updatedAt": student.updated_at.isoformat() if student.updated_at else None,
    }


@router.get("/me")
async def get_my_record(student: Student = Depends(get_current_student)):
    """The signed-in student's own record."""
    return student_to_dict(student)


@router.get("/by-roll/{roll_no}")
async def get_student_by_roll(
    roll_no: str,
    identity: Identity = Depends(require_guard),
    db: Session = Depends(get_db_session)
):
    """Look up a student by roll number (guard desk, admin)."""
    try:
        return student_to_dict(StudentService.get_by_roll(db, roll_no))
    except HostelError as e:
        raise to_http_exception(e)


@router.post("/me/counseling")
async def request_counseling(
    request: Request,
    background_tasks: BackgroundTasks,
    student: Student = Depends(get_current_student),
):
    """E-mail the counselor with the student's details and confirm to the student."""
    if not config.COUNSELOR_EMAIL:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Counseling support is not configured"
        )
    fm = getattr(request.app.state, "mail", None)
    background_tasks.add_task(
        NotificationService.deliver,
        fm,
        [config.COUNSELOR_EMAIL],
        f"Counseling Support Request - {student.full_name} ({student.roll_no})",
        NotificationService.counseling_request_body(student),
        MessageType.html,
    )
    if student.email:
        background_tasks.add_task(
            NotificationService.deliver,
            fm,
            [student.email],
            "Your Counseling Support Request - Confirmation",
            NotificationService.counseling_confirmation_body(student),
            MessageType.html,
        )
    logger.info(f"Counseling request queued for {student.roll_no}")
    return {"success": True, "message": "Counseling request sent successfully"}


@admin_router.get("")
async def list_students(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """All students, in provisioning order."""
    return [student_to_dict(s) for s in StudentService.list_all(db)]


@admin_router.post("/import", response_model=ImportResponse)
async def import_students(
    import_data: StudentImportRequest,
    request: Request,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Bulk import students from CSV data.

    Existing roll numbers are updated in place; bad rows are reported, not fatal.
    """
    try:
        imported, errors = StudentService.import_csv(db, import_data.csv)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.STUDENTS_IMPORT,
        actor_email=identity.email,
        resource_type="student",
        details={"imported": imported, "errors": len(errors)},
    )
    return ImportResponse(imported=imported, errors=errors or None)


@admin_router.post("/{student_id}/room")
async def assign_room(
    student_id: int,
    body: RoomAssignment,
    request: Request,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Assign a room directly. 409 when another student holds it."""
    try:
        student = StudentService.assign_room(db, student_id, body.roomNumber, body.hostelBlock)
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.ROOM_ASSIGN,
        actor_email=identity.email,
        resource_type="student",
        resource_id=student.student_id,
        details={"room_number": student.room_number, "hostel_block": student.hostel_block},
    )
    return {"success": True, "student": student_to_dict(student)}
