"""
Tests for student record endpoints and CSV provisioning
"""
import pytest

from core.errors import ValidationError
from database.models import Student
from services.student_service import StudentService

CSV_HEADER = 'roll_no,full_name,department,batch,room_number,hostel_block,fees_paid,emergency_contact'


class TestImportService:
    """Tests for StudentService.import_csv"""

    def test_creates_students(self, db_session):
        csv_text = '\n'.join([
            CSV_HEADER,
            '200101010,Meera Iyer,EE,2020,b-201,B,yes,9000000001',
            '200101011,Karan Shah,ME,2021,B-202,B,no,9000000002',
        ])
        imported, errors = StudentService.import_csv(db_session, csv_text)
        assert imported == 2
        assert errors == []
        meera = StudentService.get_by_roll(db_session, '200101010')
        assert meera.email == '200101010@iiti.ac.in'
        assert meera.room_number == 'B-201'
        assert meera.fees_paid is True
        assert meera.batch == 2020

    def test_existing_roll_is_updated(self, db_session, student):
        csv_text = f'{CSV_HEADER}\n200101001,Asha V,CSE,2020,A-110,A,yes,'
        imported, _ = StudentService.import_csv(db_session, csv_text)
        assert imported == 1
        assert db_session.query(Student).count() == 1
        db_session.refresh(student)
        assert student.full_name == 'Asha V'
        assert student.room_number == 'A-110'

    def test_iit_id_header_alias(self, db_session):
        csv_text = CSV_HEADER.replace('roll_no', 'iit_id') + '\n200101020,Nila,CSE,2022,,C,no,'
        imported, errors = StudentService.import_csv(db_session, csv_text)
        assert imported == 1
        assert StudentService.get_by_roll(db_session, '200101020').room_number is None

    def test_bad_rows_are_reported_not_fatal(self, db_session, student):
        csv_text = '\n'.join([
            CSV_HEADER,
            '200101030,Dev,CSE,twenty,,A,no,',
            '200101031,,CSE,2020,,A,no,',
            '200101032,Tara,CSE,2020,A-101,A,no,',
            '200101033,Ishan',
            '200101034,Zoya,CSE,2020,A-120,A,no,',
        ])
        imported, errors = StudentService.import_csv(db_session, csv_text)
        assert imported == 1
        assert [e['row'] for e in errors] == [1, 2, 3, 4]
        assert 'A-101' in errors[2]['message']
        assert StudentService.get_by_roll(db_session, '200101034').room_number == 'A-120'

    @pytest.mark.parametrize('csv_text', [
        '',
        CSV_HEADER,
        'roll_no,full_name\n200101040,Someone',
    ])
    def test_unusable_csv_is_rejected(self, db_session, csv_text):
        with pytest.raises(ValidationError) as exc:
            StudentService.import_csv(db_session, csv_text)
        assert exc.value.field == 'csv'


class TestStudentEndpoints:

    def test_me(self, client, student_headers):
        data = client.get('/api/students/me', headers=student_headers).json()
        assert data['rollNo'] == '200101001'
        assert data['roomNumber'] == 'A-101'
        assert data['fullName'] == 'Asha Verma'

    def test_guard_lookup_by_roll(self, client, guard_headers, student):
        response = client.get('/api/students/by-roll/200101001', headers=guard_headers)
        assert response.status_code == 200
        assert response.json()['hostelBlock'] == 'A'
        assert client.get('/api/students/by-roll/000', headers=guard_headers).status_code == 404

    def test_student_cannot_look_up_others(self, client, student_headers, other_student):
        response = client.get('/api/students/by-roll/200101002', headers=student_headers)
        assert response.status_code == 403

    def test_counseling_request(self, client, student_headers):
        response = client.post('/api/students/me/counseling', headers=student_headers)
        assert response.status_code == 200
        assert response.json()['success'] is True


class TestAdminStudents:

    def test_import_endpoint(self, client, admin_headers):
        csv_text = f'{CSV_HEADER}\n200101050,Rhea,CSE,2023,C-301,C,yes,\n200101051,,CSE,2023,,C,no,'
        response = client.post('/api/admin/students/import', json={'csv': csv_text}, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data['imported'] == 1
        assert len(data['errors']) == 1

        students = client.get('/api/admin/students', headers=admin_headers).json()
        assert [s['rollNo'] for s in students] == ['200101050']

    def test_import_without_rows_is_422(self, client, admin_headers):
        response = client.post('/api/admin/students/import', json={'csv': CSV_HEADER}, headers=admin_headers)
        assert response.status_code == 422

    def test_assign_room(self, client, admin_headers, student):
        response = client.post(f'/api/admin/students/{student.student_id}/room',
                               json={'roomNumber': 'a-150', 'hostelBlock': 'A'}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['student']['roomNumber'] == 'A-150'

    def test_assign_occupied_room_is_409(self, client, admin_headers, student, other_student):
        response = client.post(f'/api/admin/students/{student.student_id}/room',
                               json={'roomNumber': 'A-103'}, headers=admin_headers)
        assert response.status_code == 409

    def test_empty_room_vacates(self, client, admin_headers, student):
        response = client.post(f'/api/admin/students/{student.student_id}/room',
                               json={'roomNumber': ''}, headers=admin_headers)
        assert response.json()['student']['roomNumber'] is None

    def test_assign_unknown_student_is_404(self, client, admin_headers):
        response = client.post('/api/admin/students/9999/room', json={'roomNumber': 'A-1'},
                               headers=admin_headers)
        assert response.status_code == 404
