"""
Student records: lookup, CSV provisioning, room assignment and gate status.
"""
import csv
import io
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ConflictError, NotFoundError, ValidationError
from core.logger import logger
from database.models import Student
from services.room_change_service import normalize_room
import config

IMPORT_COLUMNS = [
    "roll_no", "full_name", "department", "batch",
    "room_number", "hostel_block", "fees_paid", "emergency_contact",
]

# Older spreadsheets name the roll number column iit_id
HEADER_ALIASES = {"iit_id": "roll_no"}

TRUE_VALUES = {"true", "yes", "1", "y"}


def _parse_bool(value: str) -> bool:
    return (value or "").strip().lower() in TRUE_VALUES


def _parse_batch(value: str) -> Optional[int]:
    value = (value or "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError("batch", f"Invalid batch year: {value}")


class StudentService:
    """Service for student records."""

    @staticmethod
    def get(db: Session, student_id: int) -> Student:
        student = db.query(Student).filter(Student.student_id == student_id).first()
        if student is None:
            raise NotFoundError("Student not found")
        return student

    @staticmethod
    def get_by_roll(db: Session, roll_no: str) -> Student:
        student = db.query(Student).filter(Student.roll_no == (roll_no or "").strip()).first()
        if student is None:
            raise NotFoundError("Student not found")
        return student

    @staticmethod
    def list_all(db: Session) -> List[Student]:
        return db.query(Student).order_by(Student.student_id.asc()).all()

    @staticmethod
    def import_csv(db: Session, csv_text: str) -> Tuple[int, List[Dict]]:
        """
        Create or update students from CSV text, keyed by roll number.

        The first non-empty line is the header. Rows are committed one by one; a bad
        row is reported and skipped without undoing earlier rows.

        Args:
            db: Database session
            csv_text: CSV with header roll_no,full_name,department,batch,room_number,
                hostel_block,fees_paid,emergency_contact

        Returns:
            (number of rows imported, list of {"row", "message"} errors)
        """
        lines = [line for line in (csv_text or "").splitlines() if line.strip()]
        if len(lines) < 2:
            raise ValidationError("csv", "CSV must have a header and at least one data row")

        reader = csv.reader(io.StringIO("\n".join(lines)))
        header = [HEADER_ALIASES.get(h.strip().lower(), h.strip().lower()) for h in next(reader)]
        missing = [c for c in IMPORT_COLUMNS if c not in header]
        if missing:
            raise ValidationError("csv", f"CSV header is missing columns: {', '.join(missing)}")

        imported = 0
        errors = []
        for row_number, row in enumerate(reader, start=1):
            if len(row) < len(header):
                errors.append({"row": row_number, "message": "Row has fewer cells than the header"})
                continue
            values = {name: cell.strip() for name, cell in zip(header, row)}
            roll_no = values["roll_no"]
            if not roll_no or not values["full_name"]:
                errors.append({"row": row_number, "message": "roll_no and full_name are required"})
                continue
            try:
                batch = _parse_batch(values["batch"])
            except ValidationError as e:
                errors.append({"row": row_number, "message": e.message})
                continue

            student = db.query(Student).filter(Student.roll_no == roll_no).first()
            if student is None:
                student = Student(roll_no=roll_no, email=f"{roll_no}@{config.INSTITUTE_EMAIL_DOMAIN}")
                db.add(student)
            student.full_name = values["full_name"]
            student.department = values["department"] or None
            student.batch = batch
            room = normalize_room(values["room_number"]) or None
            student.room_number = room
            student.hostel_block = values["hostel_block"] or None
            student.fees_paid = _parse_bool(values["fees_paid"])
            student.emergency_contact = values["emergency_contact"] or None
            try:
                db.commit()
                imported += 1
            except IntegrityError:
                db.rollback()
                errors.append({
                    "row": row_number,
                    "message": f"Room {room} is already assigned to another student",
                })

        logger.info(f"Student import: {imported} rows imported, {len(errors)} errors")
        return imported, errors

    @staticmethod
    def assign_room(
        db: Session,
        student_id: int,
        room_number: Optional[str],
        hostel_block: Optional[str] = None,
    ) -> Student:
        """
        Assign a room (and optionally hostel block) to a student. An empty room vacates.

        Raises:
            NotFoundError: student does not exist
            ConflictError: another student holds the room
        """
        student = StudentService.get(db, student_id)
        room = normalize_room(room_number) or None
        student.room_number = room
        if hostel_block is not None:
            student.hostel_block = hostel_block.strip() or None
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Room {room} is already occupied")
        db.refresh(student)
        logger.info(f"Student {student.roll_no} assigned to room {room}")
        return student

    @staticmethod
    def set_in_status(db: Session, roll_no: str, in_status: bool) -> Student:
        """Record a gate check-in (True) or check-out (False)."""
        student = StudentService.get_by_roll(db, roll_no)
        student.in_status = bool(in_status)
        db.commit()
        db.refresh(student)
        logger.info(f"Student {student.roll_no} checked {'in' if student.in_status else 'out'}")
        return student
