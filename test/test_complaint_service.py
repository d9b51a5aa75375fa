"""
Tests for the complaint lifecycle
"""
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import InvalidTransitionError, NotFoundError, ValidationError
from database.models import Complaint, ComplaintStatus, ComplaintType
from services.complaint_service import ComplaintService, parse_complaint_type


class TestFile:
    """Tests for ComplaintService.file"""

    def test_new_complaint_is_open(self, db_session, student):
        complaint = ComplaintService.file(db_session, student.student_id, 'technical', 'Wi-Fi down in A block')
        assert complaint.complaint_id is not None
        assert complaint.status == ComplaintStatus.OPEN
        assert complaint.type == ComplaintType.TECHNICAL
        assert complaint.closed_at is None

    def test_missing_type_defaults_to_infrastructure(self, db_session, student):
        complaint = ComplaintService.file(db_session, student.student_id, None, 'Broken window')
        assert complaint.type == ComplaintType.INFRASTRUCTURE

    def test_unknown_type_is_rejected(self, db_session, student):
        with pytest.raises(ValidationError) as exc:
            ComplaintService.file(db_session, student.student_id, 'plumbing', 'Leak')
        assert exc.value.field == 'type'
        assert db_session.query(Complaint).count() == 0

    def test_empty_description_is_rejected(self, db_session, student):
        with pytest.raises(ValidationError) as exc:
            ComplaintService.file(db_session, student.student_id, 'cleanliness', '   ')
        assert exc.value.field == 'description'

    def test_unknown_student(self, db_session):
        with pytest.raises(NotFoundError):
            ComplaintService.file(db_session, 9999, 'cleanliness', 'Dusty corridor')

    def test_duplicate_filings_are_separate_records(self, db_session, student):
        first = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'Dusty corridor')
        second = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'Dusty corridor')
        assert first.complaint_id != second.complaint_id
        assert db_session.query(Complaint).count() == 2

    def test_type_parsing_is_case_insensitive(self):
        assert parse_complaint_type(' Cleanliness ') == ComplaintType.CLEANLINESS

    @pytest.mark.parametrize('blank', ['', '   '])
    def test_blank_type_defaults_to_infrastructure(self, db_session, student, blank):
        complaint = ComplaintService.file(db_session, student.student_id, blank, 'Broken window')
        assert complaint.type == ComplaintType.INFRASTRUCTURE


class TestListing:
    """Tests for complaint ordering and filtering"""

    def test_newest_first(self, db_session, student):
        older = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'old')
        newer = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'new')
        older.created_at = datetime.utcnow() - timedelta(hours=2)
        db_session.commit()

        ids = [c.complaint_id for c in ComplaintService.list_for(db_session, student.student_id)]
        assert ids == [newer.complaint_id, older.complaint_id]

    def test_equal_timestamps_keep_filing_order(self, db_session, student):
        stamp = datetime(2025, 1, 10, 9, 0, 0)
        first = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'one')
        second = ComplaintService.file(db_session, student.student_id, 'cleanliness', 'two')
        first.created_at = stamp
        second.created_at = stamp
        db_session.commit()

        ids = [c.complaint_id for c in ComplaintService.list_all(db_session)]
        assert ids == [first.complaint_id, second.complaint_id]

    def test_list_for_only_returns_own(self, db_session, student, other_student):
        ComplaintService.file(db_session, student.student_id, 'cleanliness', 'mine')
        ComplaintService.file(db_session, other_student.student_id, 'cleanliness', 'theirs')
        complaints = ComplaintService.list_for(db_session, student.student_id)
        assert [c.description for c in complaints] == ['mine']

    def test_filters(self, db_session, student):
        ComplaintService.file(db_session, student.student_id, 'cleanliness', 'a')
        technical = ComplaintService.file(db_session, student.student_id, 'technical', 'b')
        ComplaintService.transition(db_session, technical.complaint_id, 'resolved')

        assert len(ComplaintService.list_all(db_session, complaint_type='technical')) == 1
        assert len(ComplaintService.list_all(db_session, status='open')) == 1
        assert ComplaintService.list_all(db_session, complaint_type='technical', status='open') == []

    def test_invalid_filter(self, db_session):
        with pytest.raises(ValidationError):
            ComplaintService.list_all(db_session, status='pending')


class TestTransition:
    """Tests for ComplaintService.transition"""

    @pytest.fixture
    def complaint(self, db_session, student):
        return ComplaintService.file(db_session, student.student_id, 'infrastructure', 'Leaking tap')

    def test_full_lifecycle(self, db_session, complaint):
        resolved = ComplaintService.transition(db_session, complaint.complaint_id, 'resolved',
                                               resolution_info='Plumber replaced washer')
        assert resolved.status == ComplaintStatus.RESOLVED
        assert resolved.closed_at is None
        assert resolved.resolution_info == 'Plumber replaced washer'

        closed = ComplaintService.transition(db_session, complaint.complaint_id, 'closed')
        assert closed.status == ComplaintStatus.CLOSED
        assert closed.closed_at is not None
        assert closed.closed_at >= closed.created_at

    def test_open_cannot_jump_to_closed(self, db_session, complaint):
        with pytest.raises(InvalidTransitionError):
            ComplaintService.transition(db_session, complaint.complaint_id, 'closed')
        db_session.refresh(complaint)
        assert complaint.status == ComplaintStatus.OPEN

    @pytest.mark.parametrize('path, target', [
        (['resolved'], 'open'),
        (['resolved', 'closed'], 'resolved'),
        (['resolved', 'closed'], 'open'),
        (['resolved'], 'resolved'),
        ([], 'open'),
    ])
    def test_no_backward_or_repeated_moves(self, db_session, complaint, path, target):
        for step in path:
            ComplaintService.transition(db_session, complaint.complaint_id, step)
        with pytest.raises(InvalidTransitionError):
            ComplaintService.transition(db_session, complaint.complaint_id, target)

    def test_explicit_closed_at_is_kept(self, db_session, complaint):
        ComplaintService.transition(db_session, complaint.complaint_id, 'resolved')
        when = complaint.created_at + timedelta(days=1)
        closed = ComplaintService.transition(db_session, complaint.complaint_id, 'closed', closed_at=when)
        assert closed.closed_at == when

    def test_aware_closed_at_is_stored_as_utc(self, db_session, complaint):
        ComplaintService.transition(db_session, complaint.complaint_id, 'resolved')
        when = (complaint.created_at + timedelta(days=1)).replace(tzinfo=timezone.utc)
        closed = ComplaintService.transition(db_session, complaint.complaint_id, 'closed', closed_at=when)
        assert closed.closed_at == when.replace(tzinfo=None)

    def test_closed_at_before_created_at_is_rejected(self, db_session, complaint):
        ComplaintService.transition(db_session, complaint.complaint_id, 'resolved')
        with pytest.raises(ValidationError) as exc:
            ComplaintService.transition(db_session, complaint.complaint_id, 'closed',
                                        closed_at=complaint.created_at - timedelta(days=1))
        assert exc.value.field == 'closed_at'

    def test_closed_at_with_open_target_is_rejected(self, db_session, complaint):
        with pytest.raises(ValidationError):
            ComplaintService.transition(db_session, complaint.complaint_id, 'open', closed_at=datetime.utcnow())

    def test_unknown_status(self, db_session, complaint):
        with pytest.raises(ValidationError) as exc:
            ComplaintService.transition(db_session, complaint.complaint_id, 'archived')
        assert exc.value.field == 'status'

    def test_missing_complaint(self, db_session):
        with pytest.raises(NotFoundError):
            ComplaintService.transition(db_session, 424242, 'resolved')
