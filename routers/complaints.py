"""
Complaint APIs: students file and track their own, admins review and move them along.
"""
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from auth.dependencies import get_db_session, get_current_student, require_admin
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from core.logger import logger
from core.validators import validate_file_size, validate_photo_extension
from database.models import Complaint, ComplaintType, Student
from services.audit_service import AuditAction, AuditService
from services.complaint_service import ComplaintService
from storage.blob_store import get_blob_store, viewable_url
import config


router = APIRouter(prefix="/api/complaints", tags=["complaints"])
admin_router = APIRouter(prefix="/api/admin", tags=["complaints"])


class ComplaintCreate(BaseModel):
    """File a complaint. Type defaults to infrastructure."""
    type: Optional[str] = None
    description: str
    photoUrl: Optional[str] = None


class ComplaintUpdate(BaseModel):
    """Admin status change."""
    status: str
    closedAt: Optional[datetime] = None
    resolutionInfo: Optional[str] = None


def complaint_to_dict(complaint: Complaint) -> dict:
    student = complaint.student
    return {
        "complaintId": complaint.complaint_id,
        "studentId": complaint.student_id,
        "rollNo": student.roll_no if student else None,
        "fullName": student.full_name if student else None,
        "hostelBlock": student.hostel_block if student else None,
        "roomNumber": student.room_number if student else None,
        "type": complaint.type.value,
        "description": complaint.description,
        "photoUrl": viewable_url(complaint.photo_url),
        "status": complaint.status.value,
        "createdAt": complaint.created_at.isoformat() if complaint.created_at else None,
        "closedAt": complaint.closed_at.isoformat() if complaint.closed_at else None,
        "resolutionInfo": complaint.resolution_info,
    }


@router.get("")
async def list_my_complaints(
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    """The signed-in student's complaints, newest first."""
    return [complaint_to_dict(c) for c in ComplaintService.list_for(db, student.student_id)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def file_complaint(
    body: ComplaintCreate,
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    """File a complaint in state open."""
    try:
        complaint = ComplaintService.file(db, student.student_id, body.type, body.description, body.photoUrl)
    except HostelError as e:
        raise to_http_exception(e)
    return complaint_to_dict(complaint)


@router.post("/photo", status_code=status.HTTP_201_CREATED)
async def upload_complaint_photo(
    file: UploadFile = File(...),
    student: Student = Depends(get_current_student),
):
    """Store a complaint photo and return the reference to send with the complaint."""
    if not validate_photo_extension(file.filename, config.ALLOWED_PHOTO_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type. Allowed: {', '.join(sorted(config.ALLOWED_PHOTO_EXTENSIONS))}"
        )
    data = await file.read()
    is_valid, error = validate_file_size(len(data), config.MAX_PHOTO_SIZE_MB * 1024 * 1024)
    if not is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

    try:
        url = get_blob_store().put(data, file.filename, content_type=file.content_type)
    except (OSError, ValueError, ClientError, BotoCoreError) as e:
        logger.error(f"Failed to store complaint photo for {student.roll_no}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store photo"
        )
    return {"url": url, "viewUrl": viewable_url(url)}


@admin_router.get("/complaints")
async def list_all_complaints(
    type_filter: Optional[str] = Query(None, alias="type"),
    status_filter: Optional[str] = Query(None, alias="status"),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """All complaints, newest first, optionally filtered by type and status."""
    try:
        complaints = ComplaintService.list_all(db, complaint_type=type_filter, status=status_filter)
    except HostelError as e:
        raise to_http_exception(e)
    return [complaint_to_dict(c) for c in complaints]


@admin_router.get("/maintenance")
async def list_maintenance(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Infrastructure complaints for the maintenance tracker."""
    complaints = ComplaintService.list_all(db, complaint_type=ComplaintType.INFRASTRUCTURE)
    return [complaint_to_dict(c) for c in complaints]


@admin_router.patch("/complaints/{complaint_id}")
async def update_complaint(
    complaint_id: int,
    body: ComplaintUpdate,
    request: Request,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """Move a complaint to its next status (open -> resolved -> closed)."""
    try:
        complaint = ComplaintService.transition(
            db,
            complaint_id,
            body.status,
            closed_at=body.closedAt,
            resolution_info=body.resolutionInfo,
        )
    except HostelError as e:
        raise to_http_exception(e)

    AuditService.log_from_request(
        db=db,
        request=request,
        action=AuditAction.COMPLAINT_TRANSITION,
        actor_email=identity.email,
        resource_type="complaint",
        resource_id=complaint.complaint_id,
        details={"status": complaint.status.value},
    )
    return {"success": True, "complaint": complaint_to_dict(complaint)}
