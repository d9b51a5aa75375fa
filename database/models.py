"""
Database models for the hostel management system.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, JSON, Index, TypeDecorator, text
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        kwargs.setdefault("length", 32)
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading; unknown values stay raw strings."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums - Must be defined before models that use them
# ============================================================================

class AppRole(str, enum.Enum):
    """Roles that gate which dashboard a user lands on."""
    ADMIN = "admin"
    GUARD = "guard"
    STUDENT = "student"


class ComplaintType(str, enum.Enum):
    """Complaint categories."""
    INFRASTRUCTURE = "infrastructure"
    CLEANLINESS = "cleanliness"
    TECHNICAL = "technical"
    OTHER = "other"


class ComplaintStatus(str, enum.Enum):
    """Complaint lifecycle status (open -> resolved -> closed)."""
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class RoomChangeStatus(str, enum.Enum):
    """Room-change request status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationCategory(str, enum.Enum):
    """Notification categories."""
    GENERAL = "general"
    EMERGENCY = "emergency"


# ============================================================================
# Models
# ============================================================================

class AppUser(Base):
    """Role assignment keyed by email. Created out-of-band by an admin."""
    __tablename__ = "app_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(EnumValue(AppRole), nullable=False)
    phone_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_app_user_role', 'role'),
    )


class RevokedSession(Base):
    """Identity-provider sessions terminated by sign-out or the domain gate."""
    __tablename__ = "revoked_sessions"

    id = Column(Integer, primary_key=True, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)  # sha256 of the bearer token
    email = Column(String(255), nullable=True)
    reason = Column(String(100), nullable=False)  # sign_out | domain_mismatch
    expires_at = Column(DateTime, nullable=True)  # token expiry; rows can be purged afterwards
    revoked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_revoked_token_hash', 'token_hash'),
    )


class Student(Base):
    """Student record, provisioned by admin import."""
    __tablename__ = "students"

    student_id = Column(Integer, primary_key=True, index=True)
    roll_no = Column(String(50), unique=True, nullable=False)  # email local part
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=False)
    department = Column(String(255), nullable=True)
    batch = Column(Integer, nullable=True)
    # At most one student per room; enforced by the store, not by callers
    room_number = Column(String(50), unique=True, nullable=True)
    hostel_block = Column(String(50), nullable=True)
    fees_paid = Column(Boolean, default=False, nullable=False)
    emergency_contact = Column(String(100), nullable=True)
    in_status = Column(Boolean, default=True, nullable=False)  # True = checked in
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    complaints = relationship("Complaint", back_populates="student", cascade="all, delete-orphan")
    room_change_requests = relationship("RoomChangeRequest", back_populates="student", cascade="all, delete-orphan")
    visitor_requests = relationship("VisitorRequest", back_populates="student", cascade="all, delete-orphan")
    feedbacks = relationship("Feedback", back_populates="student", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_student_roll_no', 'roll_no'),
        Index('idx_student_hostel', 'hostel_block'),
    )


class Complaint(Base):
    """Complaint filed by a student; owned through student_id."""
    __tablename__ = "complaints"

    complaint_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False)
    type = Column(EnumValue(ComplaintType), nullable=False, default=ComplaintType.INFRASTRUCTURE)
    description = Column(Text, nullable=False)
    photo_url = Column(String(1024), nullable=True)  # opaque blob reference
    status = Column(EnumValue(ComplaintStatus), nullable=False, default=ComplaintStatus.OPEN)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    resolution_info = Column(Text, nullable=True)

    student = relationship("Student", back_populates="complaints")

    __table_args__ = (
        Index('idx_complaint_student', 'student_id'),
        Index('idx_complaint_status', 'status'),
        Index('idx_complaint_type', 'type'),
        Index('idx_complaint_created', 'created_at'),
    )


class RoomChangeRequest(Base):
    """Student request to move to another room."""
    __tablename__ = "room_change_requests"

    request_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False)
    roll_no = Column(String(50), nullable=False)
    full_name = Column(String(255), nullable=False)
    current_room = Column(String(50), nullable=True)
    preferred_room = Column(String(50), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(EnumValue(RoomChangeStatus), nullable=False, default=RoomChangeStatus.PENDING)
    raised_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    closed_at = Column(DateTime, nullable=True)

    student = relationship("Student", back_populates="room_change_requests")

    __table_args__ = (
        Index('idx_room_request_student', 'student_id'),
        Index('idx_room_request_raised', 'raised_at'),
        # One pending reservation per room; a second concurrent submit fails here
        Index(
            'uq_room_request_pending_room', 'preferred_room',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )


class Notification(Base):
    """Append-only log of sent notifications."""
    __tablename__ = "notifications"

    notification_id = Column(Integer, primary_key=True, index=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    recipients = Column(Text, nullable=False)  # comma-separated addresses
    category = Column(EnumValue(NotificationCategory), nullable=False, default=NotificationCategory.GENERAL)
    sender_email = Column(String(255), nullable=True)
    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_notification_sent', 'sent_at'),
    )


class VisitorRequest(Base):
    """Visitor registered by a student and checked in/out by a guard."""
    __tablename__ = "visitor_requests"

    request_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False)
    roll_no = Column(String(50), nullable=False)
    hostel_block = Column(String(50), nullable=True)
    room_number = Column(String(50), nullable=True)
    emergency_contact = Column(String(100), nullable=True)
    visitor_name = Column(String(255), nullable=False)
    info = Column(Text, nullable=False)
    requested_on_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    arrival_time = Column(DateTime, nullable=True)
    departure_time = Column(DateTime, nullable=True)

    student = relationship("Student", back_populates="visitor_requests")

    __table_args__ = (
        Index('idx_visitor_roll_no', 'roll_no'),
        Index('idx_visitor_requested', 'requested_on_time'),
    )


class Feedback(Base):
    """Weekly hostel feedback from a student."""
    __tablename__ = "feedbacks"

    feedback_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False)
    feedback_text = Column(Text, nullable=False)
    infra_rating = Column(Integer, nullable=False)
    technical_rating = Column(Integer, nullable=False)
    cleanliness_rating = Column(Integer, nullable=False)
    overall_rating = Column(Integer, nullable=False)
    feedback_week = Column(String(20), nullable=False)  # e.g. 2025-W14
    hostel_block = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="feedbacks")

    __table_args__ = (
        Index('idx_feedback_student', 'student_id'),
        Index('idx_feedback_week', 'feedback_week'),
    )


class AuditLog(Base):
    """Audit log for admin and guard actions."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False)  # e.g. "complaint_transition", "forced_sign_out"
    resource_type = Column(String(50), nullable=True)  # e.g. "complaint", "student"
    resource_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 compatible
    user_agent = Column(String(500), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_actor', 'actor_email'),
        Index('idx_audit_action', 'action'),
    )
