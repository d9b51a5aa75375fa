"""
Complaint lifecycle: filing, listing, and the open -> resolved -> closed progression.
"""
from datetime import datetime, timezone
from typing import Optional, List, Union

from sqlalchemy.orm import Session, joinedload

from core.errors import NotFoundError, ValidationError, InvalidTransitionError
from core.logger import logger
from database.models import Complaint, ComplaintStatus, ComplaintType, Student

# Strict linear order; a complaint cannot skip "resolved" or move backwards
ALLOWED_TRANSITIONS = {
    ComplaintStatus.OPEN: {ComplaintStatus.RESOLVED},
    ComplaintStatus.RESOLVED: {ComplaintStatus.CLOSED},
    ComplaintStatus.CLOSED: set(),
}

DEFAULT_COMPLAINT_TYPE = ComplaintType.INFRASTRUCTURE


def parse_complaint_type(value: Union[str, ComplaintType, None]) -> ComplaintType:
    """Parse a complaint type; None or blank means the form default. Unknown values are rejected, not coerced."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_COMPLAINT_TYPE
    if isinstance(value, ComplaintType):
        return value
    try:
        return ComplaintType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in ComplaintType)
        raise ValidationError("type", f"Invalid complaint type: {value}. Use: {allowed}.")


def parse_complaint_status(value: Union[str, ComplaintStatus]) -> ComplaintStatus:
    if isinstance(value, ComplaintStatus):
        return value
    try:
        return ComplaintStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in ComplaintStatus)
        raise ValidationError("status", f"Invalid status: {value}. Use: {allowed}.")


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _ordered(query):
    # Newest first; equal timestamps fall back to filing order
    return query.order_by(Complaint.created_at.desc(), Complaint.complaint_id.asc())


class ComplaintService:
    """Service for complaint operations."""

    @staticmethod
    def file(
        db: Session,
        student_id: int,
        complaint_type: Union[str, ComplaintType, None],
        description: Optional[str],
        photo_url: Optional[str] = None,
    ) -> Complaint:
        """
        File a complaint in state "open".

        Identical payloads filed twice produce two complaints.

        Args:
            db: Database session
            student_id: Owner of the complaint
            complaint_type: One of ComplaintType; None means infrastructure
            description: Non-empty text
            photo_url: Optional blob URL returned by the photo upload

        Returns:
            Created Complaint with generated id

        Raises:
            NotFoundError: student does not exist
            ValidationError: unknown type or empty description
        """
        parsed_type = parse_complaint_type(complaint_type)
        description = (description or "").strip()
        if not description:
            raise ValidationError("description", "Description is required")

        student = db.query(Student).filter(Student.student_id == student_id).first()
        if student is None:
            raise NotFoundError("Student not found")

        complaint = Complaint(
            student_id=student.student_id,
            type=parsed_type,
            description=description,
            photo_url=(photo_url or "").strip() or None,
            status=ComplaintStatus.OPEN,
            created_at=datetime.utcnow(),
        )
        db.add(complaint)
        db.commit()
        db.refresh(complaint)
        logger.info(f"Complaint {complaint.complaint_id} filed by {student.roll_no} ({parsed_type.value})")
        return complaint

    @staticmethod
    def list_for(db: Session, student_id: int) -> List[Complaint]:
        """All complaints of one student, newest first."""
        query = db.query(Complaint).options(joinedload(Complaint.student)).filter(
            Complaint.student_id == student_id
        )
        return _ordered(query).all()

    @staticmethod
    def list_all(
        db: Session,
        complaint_type: Union[str, ComplaintType, None] = None,
        status: Union[str, ComplaintStatus, None] = None,
    ) -> List[Complaint]:
        """All complaints (admin view), newest first, optionally filtered."""
        query = db.query(Complaint).options(joinedload(Complaint.student))
        if complaint_type is not None:
            query = query.filter(Complaint.type == parse_complaint_type(complaint_type))
        if status is not None:
            query = query.filter(Complaint.status == parse_complaint_status(status))
        return _ordered(query).all()

    @staticmethod
    def get(db: Session, complaint_id: int) -> Complaint:
        complaint = db.query(Complaint).filter(Complaint.complaint_id == complaint_id).first()
        if complaint is None:
            raise NotFoundError("Complaint not found")
        return complaint

    @staticmethod
    def transition(
        db: Session,
        complaint_id: int,
        status: Union[str, ComplaintStatus],
        closed_at: Optional[datetime] = None,
        resolution_info: Optional[str] = None,
    ) -> Complaint:
        """
        Move a complaint one step along open -> resolved -> closed.

        Reaching "closed" stamps closed_at with the current time unless one is given.

        Raises:
            NotFoundError: complaint does not exist
            ValidationError: unknown status, or closed_at given for an open complaint
                or earlier than created_at
            InvalidTransitionError: move is not the next step of the lifecycle
        """
        target = parse_complaint_status(status)
        if closed_at is not None and target == ComplaintStatus.OPEN:
            raise ValidationError("closed_at", "closed_at cannot be set on an open complaint")

        complaint = (
            db.query(Complaint)
            .filter(Complaint.complaint_id == complaint_id)
            .with_for_update()
            .first()
        )
        if complaint is None:
            raise NotFoundError("Complaint not found")

        current = complaint.status
        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                f"Cannot move complaint from {current.value} to {target.value}"
            )

        if closed_at is not None:
            closed_at = _to_naive_utc(closed_at)
            if closed_at < complaint.created_at:
                raise ValidationError("closed_at", "closed_at cannot be earlier than the filing time")
        elif target == ComplaintStatus.CLOSED:
            closed_at = datetime.utcnow()

        complaint.status = target
        if closed_at is not None:
            complaint.closed_at = closed_at
        if resolution_info is not None and resolution_info.strip():
            complaint.resolution_info = resolution_info.strip()
        db.commit()
        db.refresh(complaint)
        logger.info(f"Complaint {complaint_id}: {current.value} -> {target.value}")
        return complaint
