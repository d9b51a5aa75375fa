"""
Notification log and mail delivery.

The log row is the record of truth; mail is handed to fastapi-mail after the
response and a delivery failure never undoes the logged notification.
"""
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime

from fastapi_mail import MessageSchema, MessageType
from sqlalchemy.orm import Session

from core.errors import ValidationError
from core.logger import get_logger
from core.validators import normalize_email
from database.models import Notification, NotificationCategory, Student
import config

logger = get_logger("notifications")

if TYPE_CHECKING:
    from fastapi_mail import FastMail


class NotificationService:
    """Service for the notification log and outgoing mail."""

    @staticmethod
    def record(
        db: Session,
        subject: str,
        message: str,
        recipients: List[str],
        category: NotificationCategory = NotificationCategory.GENERAL,
        sender_email: Optional[str] = None,
    ) -> Notification:
        """
        Append a notification to the log.

        Args:
            db: Database session
            subject: Non-empty subject line
            message: Non-empty body
            recipients: At least one address; duplicates are dropped, order kept
            category: general or emergency
            sender_email: Email of the signed-in sender

        Returns:
            Created Notification
        """
        subject = (subject or "").strip()
        message = (message or "").strip()
        if not subject:
            raise ValidationError("subject", "Subject is required")
        if not message:
            raise ValidationError("message", "Message is required")
        addresses = list(dict.fromkeys(normalize_email(r) for r in recipients or [] if normalize_email(r)))
        if not addresses:
            raise ValidationError("recipients", "At least one recipient is required")

        notification = Notification(
            subject=subject,
            message=message,
            recipients=", ".join(addresses),
            category=category,
            sender_email=sender_email,
            sent_at=datetime.utcnow(),
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(
            f"Notification {notification.notification_id} ({category.value}) logged for {len(addresses)} recipients"
        )
        return notification

    @staticmethod
    def list_all(db: Session) -> List[Notification]:
        """Notification history, most recent first."""
        return db.query(Notification).order_by(
            Notification.sent_at.desc(), Notification.notification_id.desc()
        ).all()

    @staticmethod
    async def deliver(
        fm: Optional["FastMail"],
        recipients: List[str],
        subject: str,
        body: str,
        subtype: MessageType = MessageType.plain,
    ) -> bool:
        """
        Send one message. Meant to run as a background task; failures are logged only.

        Args:
            fm: FastMail instance (from request.app.state.mail); None when SMTP is not configured
            recipients: Addresses to send to
            subject: Subject line
            body: Message body
            subtype: plain or html

        Returns:
            True if sent successfully, False otherwise
        """
        if fm is None:
            logger.warning(f"Mail not configured; skipped '{subject}' to {len(recipients)} recipients")
            return False
        message = MessageSchema(
            subject=subject,
            recipients=recipients,
            body=body,
            subtype=subtype,
        )
        try:
            await fm.send_message(message)
            logger.info(f"Mail '{subject}' sent to {len(recipients)} recipients")
            return True
        except Exception as e:
            logger.error(f"Failed to send mail '{subject}': {e}", exc_info=True)
            return False

    @staticmethod
    def counseling_request_body(student: Student) -> str:
        def row(label, value):
            return (
                f'<tr><td style="padding: 8px; font-weight: bold; width: 150px;">{label}:</td>'
                f'<td style="padding: 8px;">{value}</td></tr>'
            )

        return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #3730a3;">Counseling Support Request</h2>
                <p>A student has requested counseling support. Please contact them at your earliest convenience.</p>
                <table style="width: 100%; border-collapse: collapse;">
                    {row("Name", student.full_name)}
                    {row("Roll Number", student.roll_no)}
                    {row("Email", student.email or "Not provided")}
                    {row("Department", student.department or "Not provided")}
                    {row("Batch", student.batch or "Not provided")}
                    {row("Hostel Block", student.hostel_block or "Not Assigned")}
                    {row("Room Number", student.room_number or "Not Assigned")}
                    {row("Emergency Contact", student.emergency_contact or "Not provided")}
                </table>
                <p style="color: #666; font-size: 12px;">This is an automated email from {config.SMTP_FROM_NAME}.</p>
            </div>
        </body>
        </html>
        """

    @staticmethod
    def counseling_confirmation_body(student: Student) -> str:
        return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #3730a3;">Counseling Support Request - Confirmation</h2>
                <p>Dear {student.full_name},</p>
                <p>We have received your request for counseling support. The counseling team has been
                notified and someone will reach out to you within 24 hours.</p>
                <p>All conversations are strictly confidential.</p>
                <p style="color: #666; font-size: 12px;">This is an automated email from {config.SMTP_FROM_NAME}.</p>
            </div>
        </body>
        </html>
        """
