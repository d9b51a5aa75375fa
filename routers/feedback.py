"""
Weekly feedback APIs.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional

from auth.dependencies import get_db_session, get_current_student, require_admin
from auth.security import Identity
from core.errors import HostelError, to_http_exception
from database.models import Feedback, Student
from services.feedback_service import FeedbackService


router = APIRouter(prefix="/api/feedback", tags=["feedback"])
admin_router = APIRouter(prefix="/api/admin/feedback", tags=["feedback"])


class FeedbackCreate(BaseModel):
    feedbackText: str
    infraRating: int = Field(..., ge=1, le=5)
    technicalRating: int = Field(..., ge=1, le=5)
    cleanlinessRating: int = Field(..., ge=1, le=5)
    overallRating: int = Field(..., ge=1, le=5)
    feedbackWeek: Optional[str] = None
    hostelBlock: Optional[str] = None


def feedback_to_dict(feedback: Feedback) -> dict:
    return {
        "feedbackId": feedback.feedback_id,
        "studentId": feedback.student_id,
        "feedbackText": feedback.feedback_text,
        "infraRating": feedback.infra_rating,
        "technicalRating": feedback.technical_rating,
        "cleanlinessRating": feedback.cleanliness_rating,
        "overallRating": feedback.overall_rating,
        "feedbackWeek": feedback.feedback_week,
        "hostelBlock": feedback.hostel_block,
        "createdAt": feedback.created_at.isoformat() if feedback.created_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    body: FeedbackCreate,
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    try:
        feedback = FeedbackService.submit(
            db,
            student,
            body.feedbackText,
            {
                "infra_rating": body.infraRating,
                "technical_rating": body.technicalRating,
                "cleanliness_rating": body.cleanlinessRating,
                "overall_rating": body.overallRating,
            },
            feedback_week=body.feedbackWeek,
            hostel_block=body.hostelBlock,
        )
    except HostelError as e:
        raise to_http_exception(e)
    return {"success": True, "feedback": feedback_to_dict(feedback)}


@router.get("/mine")
async def list_my_feedback(
    student: Student = Depends(get_current_student),
    db: Session = Depends(get_db_session)
):
    return [feedback_to_dict(f) for f in FeedbackService.list_for(db, student.student_id)]


@admin_router.get("")
async def list_all_feedback(
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    return [feedback_to_dict(f) for f in FeedbackService.list_all(db)]
