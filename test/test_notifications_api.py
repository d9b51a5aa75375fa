"""
Tests for the notification log, announcements and mail delivery
"""
import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi_mail import MessageType

from core.errors import ValidationError
from database.models import AppRole, Notification, NotificationCategory
from services.notification_service import NotificationService

from conftest import add_role, add_student


class TestRecord:
    """Tests for NotificationService.record"""

    def test_recipients_are_normalized_and_deduplicated(self, db_session):
        notification = NotificationService.record(
            db_session, 'Water cut', 'No water 2-4pm',
            ['B@iiti.ac.in', 'a@iiti.ac.in', ' b@iiti.ac.in ', ''],
        )
        assert notification.recipients == 'b@iiti.ac.in, a@iiti.ac.in'
        assert notification.category == NotificationCategory.GENERAL

    @pytest.mark.parametrize('subject, message, recipients, field', [
        ('', 'body', ['a@iiti.ac.in'], 'subject'),
        ('subject', '  ', ['a@iiti.ac.in'], 'message'),
        ('subject', 'body', [], 'recipients'),
    ])
    def test_invalid_input(self, db_session, subject, message, recipients, field):
        with pytest.raises(ValidationError) as exc:
            NotificationService.record(db_session, subject, message, recipients)
        assert exc.value.field == field
        assert db_session.query(Notification).count() == 0

    def test_history_is_most_recent_first(self, db_session):
        for subject, sent_at in [('t1', datetime(2025, 3, 1, 9)), ('t3', datetime(2025, 3, 3, 9)),
                                 ('t2', datetime(2025, 3, 2, 9))]:
            db_session.add(Notification(subject=subject, message='m', recipients='a@iiti.ac.in',
                                        category=NotificationCategory.GENERAL, sent_at=sent_at))
        db_session.commit()
        assert [n.subject for n in NotificationService.list_all(db_session)] == ['t3', 't2', 't1']


class TestDeliver:
    """Tests for NotificationService.deliver"""

    def test_without_mail_configured(self):
        assert asyncio.run(NotificationService.deliver(None, ['a@iiti.ac.in'], 's', 'b')) is False

    def test_sends_message(self):
        fm = AsyncMock()
        sent = asyncio.run(NotificationService.deliver(fm, ['a@iiti.ac.in'], 'Subject', '<p>x</p>',
                                                       MessageType.html))
        assert sent is True
        message = fm.send_message.await_args.args[0]
        assert message.subject == 'Subject'
        assert message.recipients == ['a@iiti.ac.in']

    def test_failure_is_logged_not_raised(self):
        fm = AsyncMock()
        fm.send_message.side_effect = ConnectionError('smtp down')
        assert asyncio.run(NotificationService.deliver(fm, ['a@iiti.ac.in'], 's', 'b')) is False


class TestNotificationEndpoints:

    def test_admin_sends_and_everyone_reads(self, client, admin_headers, student_headers):
        response = client.post('/api/notifications', json={
            'subject': 'Fire drill',
            'message': 'Assemble at the lawn at 5pm',
            'recipients': ['200101001@iiti.ac.in', '200101002@iiti.ac.in'],
        }, headers=admin_headers)
        assert response.status_code == 201
        notification = response.json()['notification']
        assert notification['senderEmail'] == 'warden@iiti.ac.in'
        assert notification['category'] == 'general'

        history = client.get('/api/notifications', headers=student_headers).json()
        assert [n['subject'] for n in history] == ['Fire drill']

    def test_student_cannot_send(self, client, student_headers):
        response = client.post('/api/notifications', json={
            'subject': 's', 'message': 'm', 'recipients': ['a@iiti.ac.in'],
        }, headers=student_headers)
        assert response.status_code == 403

    def test_invalid_recipient_is_422(self, client, admin_headers):
        response = client.post('/api/notifications', json={
            'subject': 's', 'message': 'm', 'recipients': ['not-an-email'],
        }, headers=admin_headers)
        assert response.status_code == 422

    def test_empty_subject_is_422(self, client, admin_headers):
        response = client.post('/api/notifications', json={
            'subject': ' ', 'message': 'm', 'recipients': ['a@iiti.ac.in'],
        }, headers=admin_headers)
        assert response.status_code == 422
        assert response.json()['detail']['field'] == 'subject'


class TestEmergencyAnnouncement:

    def test_guard_announcement_is_emergency(self, client, guard_headers):
        response = client.post('/api/guard/emergency-announcement', json={
            'subject': 'Gate closed', 'message': 'Main gate closed tonight',
            'recipients': ['200101001@iiti.ac.in'],
        }, headers=guard_headers)
        assert response.status_code == 201
        assert response.json()['notification']['category'] == 'emergency'

    def test_recipients_list(self, client, guard_headers, db_session):
        add_student(db_session, '200101060', hostel_block='D')
        add_role(db_session, '200101060@iiti.ac.in', AppRole.STUDENT)
        recipients = client.get('/api/guard/emergency-announcement/recipients', headers=guard_headers).json()
        assert recipients == [{
            'email': '200101060@iiti.ac.in', 'role': 'student', 'hostel': 'D', 'department': 'CSE',
        }]
