"""Initial migration - role assignments, students, complaints, room changes, visitors, notifications

Revision ID: 001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Role assignments keyed by email (enum values stored as strings)
    op.create_table(
        'app_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_app_users_id', 'app_users', ['id'])
    op.create_index('idx_app_user_role', 'app_users', ['role'])

    op.create_table(
        'revoked_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('reason', sa.String(length=100), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash')
    )
    op.create_index('ix_revoked_sessions_id', 'revoked_sessions', ['id'])
    op.create_index('idx_revoked_token_hash', 'revoked_sessions', ['token_hash'])

    op.create_table(
        'students',
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('roll_no', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('batch', sa.Integer(), nullable=True),
        sa.Column('room_number', sa.String(length=50), nullable=True),
        sa.Column('hostel_block', sa.String(length=50), nullable=True),
        sa.Column('fees_paid', sa.Boolean(), nullable=False),
        sa.Column('emergency_contact', sa.String(length=100), nullable=True),
        sa.Column('in_status', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('student_id'),
        sa.UniqueConstraint('roll_no'),
        # At most one student per room
        sa.UniqueConstraint('room_number')
    )
    op.create_index('ix_students_student_id', 'students', ['student_id'])
    op.create_index('idx_student_roll_no', 'students', ['roll_no'])
    op.create_index('idx_student_hostel', 'students', ['hostel_block'])

    op.create_table(
        'complaints',
        sa.Column('complaint_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('photo_url', sa.String(length=1024), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('resolution_info', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.student_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('complaint_id')
    )
    op.create_index('ix_complaints_complaint_id', 'complaints', ['complaint_id'])
    op.create_index('idx_complaint_student', 'complaints', ['student_id'])
    op.create_index('idx_complaint_status', 'complaints', ['status'])
    op.create_index('idx_complaint_type', 'complaints', ['type'])
    op.create_index('idx_complaint_created', 'complaints', ['created_at'])

    op.create_table(
        'room_change_requests',
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('roll_no', sa.String(length=50), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('current_room', sa.String(length=50), nullable=True),
        sa.Column('preferred_room', sa.String(length=50), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('raised_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.student_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('request_id')
    )
    op.create_index('ix_room_change_requests_request_id', 'room_change_requests', ['request_id'])
    op.create_index('idx_room_request_student', 'room_change_requests', ['student_id'])
    op.create_index('idx_room_request_raised', 'room_change_requests', ['raised_at'])
    # One pending reservation per room
    op.create_index(
        'uq_room_request_pending_room', 'room_change_requests', ['preferred_room'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'notifications',
        sa.Column('notification_id', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('recipients', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('sender_email', sa.String(length=255), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('notification_id')
    )
    op.create_index('ix_notifications_notification_id', 'notifications', ['notification_id'])
    op.create_index('idx_notification_sent', 'notifications', ['sent_at'])

    op.create_table(
        'visitor_requests',
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('roll_no', sa.String(length=50), nullable=False),
        sa.Column('hostel_block', sa.String(length=50), nullable=True),
        sa.Column('room_number', sa.String(length=50), nullable=True),
        sa.Column('emergency_contact', sa.String(length=100), nullable=True),
        sa.Column('visitor_name', sa.String(length=255), nullable=False),
        sa.Column('info', sa.Text(), nullable=False),
        sa.Column('requested_on_time', sa.DateTime(), nullable=False),
        sa.Column('arrival_time', sa.DateTime(), nullable=True),
        sa.Column('departure_time', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.student_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('request_id')
    )
    op.create_index('ix_visitor_requests_request_id', 'visitor_requests', ['request_id'])
    op.create_index('idx_visitor_roll_no', 'visitor_requests', ['roll_no'])
    op.create_index('idx_visitor_requested', 'visitor_requests', ['requested_on_time'])

    op.create_table(
        'feedbacks',
        sa.Column('feedback_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('feedback_text', sa.Text(), nullable=False),
        sa.Column('infra_rating', sa.Integer(), nullable=False),
        sa.Column('technical_rating', sa.Integer(), nullable=False),
        sa.Column('cleanliness_rating', sa.Integer(), nullable=False),
        sa.Column('overall_rating', sa.Integer(), nullable=False),
        sa.Column('feedback_week', sa.String(length=20), nullable=False),
        sa.Column('hostel_block', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['students.student_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('feedback_id')
    )
    op.create_index('ix_feedbacks_feedback_id', 'feedbacks', ['feedback_id'])
    op.create_index('idx_feedback_student', 'feedbacks', ['student_id'])
    op.create_index('idx_feedback_week', 'feedbacks', ['feedback_week'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_email', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('idx_audit_actor', 'audit_logs', ['actor_email'])
    op.create_index('idx_audit_action', 'audit_logs', ['action'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('feedbacks')
    op.drop_table('visitor_requests')
    op.drop_table('notifications')
    op.drop_index('uq_room_request_pending_room', table_name='room_change_requests')
    op.drop_table('room_change_requests')
    op.drop_table('complaints')
    op.drop_table('students')
    op.drop_table('revoked_sessions')
    op.drop_table('app_users')
