"""
Room-change workflow.

Availability is only advisory. The reservation made by submit() and the room
mutation made by decide() are both guarded by unique constraints in the store
(one pending request per preferred room, one student per room), so two
students who were both told a room is free cannot both get it.
"""
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from core.logger import logger
from database.models import RoomChangeRequest, RoomChangeStatus, Student

# Admin forms historically sent "accepted"
STATUS_ALIASES = {
    "accepted": RoomChangeStatus.APPROVED,
    "accept": RoomChangeStatus.APPROVED,
    "approve": RoomChangeStatus.APPROVED,
    "reject": RoomChangeStatus.REJECTED,
}


def normalize_room(room: Optional[str]) -> str:
    return (room or "").strip().upper()


def parse_decision(value: Union[str, RoomChangeStatus]) -> RoomChangeStatus:
    """Parse an admin decision; only approved or rejected are decisions."""
    if isinstance(value, RoomChangeStatus):
        decision = value
    else:
        raw = str(value).strip().lower()
        decision = STATUS_ALIASES.get(raw)
        if decision is None:
            try:
                decision = RoomChangeStatus(raw)
            except ValueError:
                raise ValidationError("status", f"Invalid status: {value}. Use: approved, rejected.")
    if decision == RoomChangeStatus.PENDING:
        raise ValidationError("status", "A decision must be approved or rejected")
    return decision


class RoomChangeService:
    """Service for room availability and room-change requests."""

    @staticmethod
    def is_occupied(db: Session, room: str, exclude_student_id: Optional[int] = None) -> bool:
        query = db.query(Student.student_id).filter(Student.room_number == room)
        if exclude_student_id is not None:
            query = query.filter(Student.student_id != exclude_student_id)
        return query.first() is not None

    @staticmethod
    def is_reserved(db: Session, room: str) -> bool:
        return db.query(RoomChangeRequest.request_id).filter(
            RoomChangeRequest.preferred_room == room,
            RoomChangeRequest.status == RoomChangeStatus.PENDING,
        ).first() is not None

    @staticmethod
    def check_availability(db: Session, room: str) -> bool:
        """
        Whether a room is free right now.

        A room is free when no student holds it and no pending request reserves it.
        The answer can be stale by the time the caller submits.
        """
        room = normalize_room(room)
        if not room:
            raise ValidationError("room", "Room number is required")
        return not RoomChangeService.is_occupied(db, room) and not RoomChangeService.is_reserved(db, room)

    @staticmethod
    def submit(db: Session, student: Student, preferred_room: str, reason: str) -> RoomChangeRequest:
        """
        Reserve a room with a pending request.

        Occupancy is re-checked here and the insert is protected by the pending-room
        unique index, so a concurrent submit for the same room fails with a conflict.

        Raises:
            ValidationError: empty room or reason, or preferred room equals current room
            ConflictError: room occupied, already reserved, or the student already has
                a pending request
        """
        room = normalize_room(preferred_room)
        reason = (reason or "").strip()
        if not room:
            raise ValidationError("preferred_room", "Preferred room is required")
        if not reason:
            raise ValidationError("reason", "Reason is required")
        if student.room_number and normalize_room(student.room_number) == room:
            raise ValidationError("preferred_room", "Preferred room is your current room")

        has_pending = db.query(RoomChangeRequest.request_id).filter(
            RoomChangeRequest.student_id == student.student_id,
            RoomChangeRequest.status == RoomChangeStatus.PENDING,
        ).first() is not None
        if has_pending:
            raise ConflictError("You already have a pending room-change request")

        if RoomChangeService.is_occupied(db, room, exclude_student_id=student.student_id):
            raise ConflictError(f"Room {room} is already occupied")

        request = RoomChangeRequest(
            student_id=student.student_id,
            roll_no=student.roll_no,
            full_name=student.full_name,
            current_room=student.room_number,
            preferred_room=room,
            reason=reason,
            status=RoomChangeStatus.PENDING,
            raised_at=datetime.utcnow(),
        )
        db.add(request)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Room {room} reservation by {student.roll_no} lost to a concurrent request")
            raise ConflictError(f"Room {room} has already been requested")
        db.refresh(request)
        logger.info(f"Room-change request {request.request_id}: {student.roll_no} -> {room}")
        return request

    @staticmethod
    def list_for(db: Session, student_id: int) -> List[RoomChangeRequest]:
        return db.query(RoomChangeRequest).filter(
            RoomChangeRequest.student_id == student_id
        ).order_by(RoomChangeRequest.raised_at.desc(), RoomChangeRequest.request_id.desc()).all()

    @staticmethod
    def list_all(db: Session, status: Union[str, RoomChangeStatus, None] = None) -> List[RoomChangeRequest]:
        query = db.query(RoomChangeRequest)
        if status is not None:
            try:
                query = query.filter(RoomChangeRequest.status == RoomChangeStatus(str(status).strip().lower()))
            except ValueError:
                raise ValidationError("status", f"Invalid status: {status}")
        return query.order_by(RoomChangeRequest.raised_at.desc(), RoomChangeRequest.request_id.desc()).all()

    @staticmethod
    def decide(db: Session, request_id: int, status: Union[str, RoomChangeStatus]) -> RoomChangeRequest:
        """
        Approve or reject a pending request.

        Approval moves the student into the preferred room. If the room was taken in the
        meantime the students.room_number constraint fails and nothing is written.

        Raises:
            NotFoundError: request does not exist
            ValidationError: decision is not approved/rejected
            InvalidTransitionError: request was already decided
            ConflictError: room is occupied at approval time
        """
        decision = parse_decision(status)

        request = (
            db.query(RoomChangeRequest)
            .filter(RoomChangeRequest.request_id == request_id)
            .with_for_update()
            .first()
        )
        if request is None:
            raise NotFoundError("Room-change request not found")
        if request.status != RoomChangeStatus.PENDING:
            raise InvalidTransitionError(f"Request already {request.status.value}")

        room = request.preferred_room
        if decision == RoomChangeStatus.APPROVED:
            student = db.query(Student).filter(Student.student_id == request.student_id).first()
            if student is None:
                raise NotFoundError("Student not found")
            student.room_number = room

        request.status = decision
        request.closed_at = datetime.utcnow()
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Room {room} is already occupied")
        db.refresh(request)
        logger.info(f"Room-change request {request_id} {decision.value}")
        return request
