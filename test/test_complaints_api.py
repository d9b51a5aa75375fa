"""
Tests for complaint endpoints
"""
from database.models import AuditLog, Complaint


class TestStudentComplaints:
    """Filing and listing as a student"""

    def test_file_and_list(self, client, student_headers):
        response = client.post('/api/complaints', json={
            'type': 'technical',
            'description': 'LAN port dead'
        }, headers=student_headers)
        assert response.status_code == 201
        data = response.json()
        assert data['status'] == 'open'
        assert data['type'] == 'technical'
        assert data['rollNo'] == '200101001'
        assert data['closedAt'] is None

        listed = client.get('/api/complaints', headers=student_headers).json()
        assert [c['complaintId'] for c in listed] == [data['complaintId']]

    def test_type_defaults_to_infrastructure(self, client, student_headers):
        response = client.post('/api/complaints', json={'description': 'Door hinge broken'},
                               headers=student_headers)
        assert response.status_code == 201
        assert response.json()['type'] == 'infrastructure'

    def test_unknown_type_is_rejected_with_field(self, client, student_headers, db_session):
        response = client.post('/api/complaints', json={'type': 'plumbing', 'description': 'Leak'},
                               headers=student_headers)
        assert response.status_code == 422
        assert response.json()['detail']['field'] == 'type'
        assert db_session.query(Complaint).count() == 0

    def test_duplicate_submission_creates_two(self, client, student_headers):
        payload = {'type': 'cleanliness', 'description': 'Bathroom not cleaned'}
        first = client.post('/api/complaints', json=payload, headers=student_headers).json()
        second = client.post('/api/complaints', json=payload, headers=student_headers).json()
        assert first['complaintId'] != second['complaintId']

    def test_students_only_see_their_own(self, client, student_headers, other_student, db_session):
        from services.complaint_service import ComplaintService
        ComplaintService.file(db_session, other_student.student_id, 'other', 'Not yours')
        assert client.get('/api/complaints', headers=student_headers).json() == []

    def test_user_without_student_record(self, client):
        from conftest import bearer
        response = client.get('/api/complaints', headers=bearer('299999999@iiti.ac.in'))
        assert response.status_code == 404


class TestPhotoUpload:

    def test_upload_returns_reference(self, client, student_headers):
        response = client.post(
            '/api/complaints/photo',
            files={'file': ('leak.jpg', b'\xff\xd8\xff\xe0fake-jpeg', 'image/jpeg')},
            headers=student_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data['url'].startswith('/uploads/complaints/')
        assert data['url'].endswith('.jpg')

        filed = client.post('/api/complaints', json={
            'type': 'infrastructure', 'description': 'Leak', 'photoUrl': data['url']
        }, headers=student_headers).json()
        assert filed['photoUrl'] == data['url']

    def test_rejects_other_file_types(self, client, student_headers):
        response = client.post(
            '/api/complaints/photo',
            files={'file': ('notes.exe', b'MZ', 'application/octet-stream')},
            headers=student_headers,
        )
        assert response.status_code == 400


class TestAdminComplaints:
    """Admin review and status changes"""

    def _file(self, client, headers, complaint_type='infrastructure', description='Ceiling leak'):
        return client.post('/api/complaints', json={'type': complaint_type, 'description': description},
                           headers=headers).json()

    def test_admin_lists_and_filters(self, client, student_headers, admin_headers):
        self._file(client, student_headers, 'infrastructure')
        self._file(client, student_headers, 'technical')

        assert len(client.get('/api/admin/complaints', headers=admin_headers).json()) == 2
        technical = client.get('/api/admin/complaints?type=technical', headers=admin_headers).json()
        assert [c['type'] for c in technical] == ['technical']
        maintenance = client.get('/api/admin/maintenance', headers=admin_headers).json()
        assert [c['type'] for c in maintenance] == ['infrastructure']

    def test_invalid_filter_is_422(self, client, admin_headers):
        response = client.get('/api/admin/complaints?status=archived', headers=admin_headers)
        assert response.status_code == 422

    def test_lifecycle_through_api(self, client, student_headers, admin_headers, db_session):
        complaint = self._file(client, student_headers)
        url = f"/api/admin/complaints/{complaint['complaintId']}"

        response = client.patch(url, json={'status': 'resolved', 'resolutionInfo': 'Patched'},
                                headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['complaint']['status'] == 'resolved'
        assert response.json()['complaint']['resolutionInfo'] == 'Patched'

        response = client.patch(url, json={'status': 'closed'}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['complaint']['closedAt'] is not None

        assert db_session.query(AuditLog).filter(AuditLog.action == 'complaint_transition').count() == 2

    def test_skipping_resolved_is_409(self, client, student_headers, admin_headers):
        complaint = self._file(client, student_headers)
        response = client.patch(f"/api/admin/complaints/{complaint['complaintId']}",
                                json={'status': 'closed'}, headers=admin_headers)
        assert response.status_code == 409

    def test_backward_move_is_409(self, client, student_headers, admin_headers):
        complaint = self._file(client, student_headers)
        url = f"/api/admin/complaints/{complaint['complaintId']}"
        client.patch(url, json={'status': 'resolved'}, headers=admin_headers)
        response = client.patch(url, json={'status': 'open'}, headers=admin_headers)
        assert response.status_code == 409

    def test_closed_at_before_filing_is_422(self, client, student_headers, admin_headers):
        complaint = self._file(client, student_headers)
        url = f"/api/admin/complaints/{complaint['complaintId']}"
        client.patch(url, json={'status': 'resolved'}, headers=admin_headers)
        response = client.patch(url, json={'status': 'closed', 'closedAt': '2000-01-01T00:00:00'},
                                headers=admin_headers)
        assert response.status_code == 422
        assert response.json()['detail']['field'] == 'closed_at'

    def test_missing_complaint_is_404(self, client, admin_headers):
        response = client.patch('/api/admin/complaints/9999', json={'status': 'resolved'},
                                headers=admin_headers)
        assert response.status_code == 404

    def test_student_cannot_transition(self, client, student_headers):
        complaint = self._file(client, student_headers)
        response = client.patch(f"/api/admin/complaints/{complaint['complaintId']}",
                                json={'status': 'resolved'}, headers=student_headers)
        assert response.status_code == 403
