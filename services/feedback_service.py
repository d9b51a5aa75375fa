"""
Weekly hostel feedback and the admin analytics summary.
"""
from datetime import datetime, date
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.errors import ValidationError
from core.logger import logger
from database.models import Complaint, ComplaintStatus, Feedback, Student

RATING_FIELDS = ("infra_rating", "technical_rating", "cleanliness_rating", "overall_rating")
MIN_RATING = 1
MAX_RATING = 5


def current_feedback_week(today: Optional[date] = None) -> str:
    """ISO week label, e.g. 2025-W07."""
    year, week, _ = (today or date.today()).isocalendar()
    return f"{year}-W{week:02d}"


class FeedbackService:
    """Service for student feedback."""

    @staticmethod
    def submit(
        db: Session,
        student: Student,
        feedback_text: str,
        ratings: Dict[str, int],
        feedback_week: Optional[str] = None,
        hostel_block: Optional[str] = None,
    ) -> Feedback:
        """
        Store one feedback entry.

        Args:
            db: Database session
            student: Author
            feedback_text: Non-empty comments
            ratings: infra_rating, technical_rating, cleanliness_rating and overall_rating, each 1..5
            feedback_week: Week label; defaults to the current ISO week
            hostel_block: Defaults to the student's hostel block

        Raises:
            ValidationError: missing text, rating out of range, or no hostel block
        """
        feedback_text = (feedback_text or "").strip()
        if not feedback_text:
            raise ValidationError("feedback_text", "Feedback text is required")
        for name in RATING_FIELDS:
            value = ratings.get(name)
            if value is None or not MIN_RATING <= int(value) <= MAX_RATING:
                raise ValidationError(name, f"{name} must be between {MIN_RATING} and {MAX_RATING}")
        hostel_block = (hostel_block or student.hostel_block or "").strip()
        if not hostel_block:
            raise ValidationError("hostel_block", "Hostel block is required")

        feedback = Feedback(
            student_id=student.student_id,
            feedback_text=feedback_text,
            feedback_week=(feedback_week or "").strip() or current_feedback_week(),
            hostel_block=hostel_block,
            created_at=datetime.utcnow(),
            **{name: int(ratings[name]) for name in RATING_FIELDS},
        )
        db.add(feedback)
        db.commit()
        db.refresh(feedback)
        logger.info(f"Feedback {feedback.feedback_id} from {student.roll_no} for {feedback.feedback_week}")
        return feedback

    @staticmethod
    def list_for(db: Session, student_id: int) -> List[Feedback]:
        return db.query(Feedback).filter(Feedback.student_id == student_id).order_by(
            Feedback.feedback_week.desc(), Feedback.created_at.desc()
        ).all()

    @staticmethod
    def list_all(db: Session) -> List[Feedback]:
        return db.query(Feedback).order_by(
            Feedback.feedback_week.asc(), Feedback.created_at.desc()
        ).all()


class AnalyticsService:
    """Aggregates for the admin dashboard."""

    @staticmethod
    def summary(db: Session) -> dict:
        occupancy = (
            db.query(Student.hostel_block, func.count(Student.student_id))
            .filter(Student.hostel_block.isnot(None), Student.room_number.isnot(None))
            .group_by(Student.hostel_block)
            .order_by(Student.hostel_block.asc())
            .all()
        )
        counts = {
            getattr(status, "value", status): count
            for status, count in db.query(Complaint.status, func.count(Complaint.complaint_id))
            .group_by(Complaint.status)
            .all()
        }
        return {
            "occupancy": {
                "hostels": [
                    {"hostel_block": block, "occupied": occupied}
                    for block, occupied in occupancy
                ]
            },
            "complaints": {
                s.value: counts.get(s.value, 0) for s in ComplaintStatus
            },
        }
