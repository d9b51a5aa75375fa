"""
Visitor requests: registered by students, checked in and out at the gate.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from core.errors import ConflictError, NotFoundError, ValidationError
from core.logger import logger
from database.models import Student, VisitorRequest

CHECK_IN = "check_in"
CHECK_OUT = "check_out"


def _newest_first(query):
    return query.order_by(VisitorRequest.requested_on_time.desc(), VisitorRequest.request_id.desc())


class VisitorService:
    """Service for visitor requests."""

    @staticmethod
    def register(db: Session, student: Student, visitor_name: str, info: str) -> VisitorRequest:
        """Register an expected visitor; hostel, room and contact come from the student record."""
        visitor_name = (visitor_name or "").strip()
        info = (info or "").strip()
        if not visitor_name:
            raise ValidationError("visitor_name", "Visitor name is required")
        if not info:
            raise ValidationError("info", "Visit details are required")

        visit = VisitorRequest(
            student_id=student.student_id,
            roll_no=student.roll_no,
            hostel_block=student.hostel_block,
            room_number=student.room_number,
            emergency_contact=student.emergency_contact,
            visitor_name=visitor_name,
            info=info,
            requested_on_time=datetime.utcnow(),
        )
        db.add(visit)
        db.commit()
        db.refresh(visit)
        logger.info(f"Visitor request {visit.request_id} registered by {student.roll_no}")
        return visit

    @staticmethod
    def list_for(db: Session, student_id: int) -> List[VisitorRequest]:
        return _newest_first(db.query(VisitorRequest).filter(VisitorRequest.student_id == student_id)).all()

    @staticmethod
    def list_all(db: Session, pending_only: bool = False) -> List[VisitorRequest]:
        query = db.query(VisitorRequest)
        if pending_only:
            query = query.filter(VisitorRequest.departure_time.is_(None))
        return _newest_first(query).all()

    @staticmethod
    def cancel(db: Session, student_id: int, request_id: int) -> None:
        """
        Cancel one of the student's own requests before the visitor arrives.

        Raises:
            NotFoundError: no such request owned by the student
            ConflictError: visitor already checked in
        """
        visit = db.query(VisitorRequest).filter(
            VisitorRequest.request_id == request_id,
            VisitorRequest.student_id == student_id,
        ).first()
        if visit is None:
            raise NotFoundError("Visitor request not found")
        if visit.arrival_time is not None:
            raise ConflictError("Visitor has already arrived")
        db.delete(visit)
        db.commit()
        logger.info(f"Visitor request {request_id} cancelled")

    @staticmethod
    def record_movement(db: Session, request_id: int, action: str, at: Optional[datetime] = None) -> VisitorRequest:
        """
        Stamp a visitor's arrival (check_in) or departure (check_out).

        Raises:
            NotFoundError: request does not exist
            ValidationError: unknown action
            ConflictError: out-of-order or repeated movement
        """
        visit = (
            db.query(VisitorRequest)
            .filter(VisitorRequest.request_id == request_id)
            .with_for_update()
            .first()
        )
        if visit is None:
            raise NotFoundError("Visitor request not found")

        now = at or datetime.utcnow()
        if action == CHECK_IN:
            if visit.arrival_time is not None:
                raise ConflictError("Visitor already checked in")
            visit.arrival_time = now
        elif action == CHECK_OUT:
            if visit.arrival_time is None:
                raise ConflictError("Visitor has not checked in")
            if visit.departure_time is not None:
                raise ConflictError("Visitor already checked out")
            visit.departure_time = now
        else:
            raise ValidationError("action", f"Invalid action: {action}. Use: {CHECK_IN}, {CHECK_OUT}.")

        db.commit()
        db.refresh(visit)
        logger.info(f"Visitor request {request_id}: {action}")
        return visit
