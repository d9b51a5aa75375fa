"""
Tests for the redirect resolver and the central institute-domain gate
"""
from datetime import timedelta

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from auth.security import create_identity_token
from core.errors import AuthorizationError, to_http_exception
from database.models import AppRole, AuditLog, RevokedSession
from services.role_service import RoleService, domain_rejection_message

from conftest import ADMIN_EMAIL, add_role, bearer


class TestRedirect:
    """Tests for GET /api/auth/redirect"""

    def test_anonymous_goes_to_sign_in(self, client):
        response = client.get('/api/auth/redirect')
        assert response.status_code == 200
        data = response.json()
        assert data['destination'] == '/sign-in'
        assert data['role'] is None
        assert data['signedOut'] is False

    def test_invalid_token_goes_to_sign_in(self, client):
        response = client.get('/api/auth/redirect', headers={'Authorization': 'Bearer not-a-jwt'})
        assert response.status_code == 200
        assert response.json()['destination'] == '/sign-in'

    def test_admin_lands_on_admin(self, client, admin_headers):
        data = client.get('/api/auth/redirect', headers=admin_headers).json()
        assert data == {'destination': '/admin', 'role': 'admin', 'message': None, 'signedOut': False}

    def test_guard_lands_on_guard(self, client, guard_headers):
        assert client.get('/api/auth/redirect', headers=guard_headers).json()['destination'] == '/guard'

    def test_unassigned_lands_on_student(self, client):
        data = client.get('/api/auth/redirect', headers=bearer('210001999@iiti.ac.in')).json()
        assert data['destination'] == '/student'
        assert data['role'] == 'student'

    def test_store_error_lands_on_student(self, client, db_session, monkeypatch):
        add_role(db_session, ADMIN_EMAIL, AppRole.ADMIN)

        def broken_lookup(db, email):
            raise OperationalError('SELECT', {}, Exception('connection refused'))

        monkeypatch.setattr(RoleService, 'lookup_role', staticmethod(broken_lookup))
        data = client.get('/api/auth/redirect', headers=bearer(ADMIN_EMAIL)).json()
        assert data['destination'] == '/student'

    def test_unreachable_store_lands_on_student(self, client, db_session, monkeypatch):
        add_role(db_session, ADMIN_EMAIL, AppRole.ADMIN)
        headers = bearer(ADMIN_EMAIL)

        def store_down(self, *args, **kwargs):
            raise OperationalError('SELECT', {}, Exception('connection refused'))

        # Revocation check and role lookup both fail
        monkeypatch.setattr(Session, 'execute', store_down)
        response = client.get('/api/auth/redirect', headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data['destination'] == '/student'
        assert data['role'] == 'student'
        assert data['signedOut'] is False

    def test_foreign_domain_is_signed_out(self, client, db_session):
        headers = bearer('intruder@gmail.com')
        data = client.get('/api/auth/redirect', headers=headers).json()
        assert data['destination'] == '/sign-in'
        assert data['signedOut'] is True
        assert '@iiti.ac.in' in data['message']

        revoked = db_session.query(RevokedSession).all()
        assert len(revoked) == 1
        assert revoked[0].reason == 'domain_mismatch'
        assert db_session.query(AuditLog).filter(AuditLog.action == 'forced_sign_out').count() == 1

        # The terminated session no longer counts as a session at all
        again = client.get('/api/auth/redirect', headers=headers).json()
        assert again['destination'] == '/sign-in'
        assert again['signedOut'] is False

    def test_unverified_email_goes_to_sign_in(self, client):
        data = client.get('/api/auth/redirect', headers=bearer('200101001@iiti.ac.in', verified=False)).json()
        assert data['destination'] == '/sign-in'
        assert data['signedOut'] is False
        assert data['message']


class TestDomainGate:
    """Role-scoped routes enforce the domain rule themselves"""

    def test_direct_navigation_with_foreign_domain_is_rejected(self, client, db_session):
        add_role(db_session, 'warden@gmail.com', AppRole.ADMIN)
        headers = bearer('warden@gmail.com')
        response = client.get('/api/admin/complaints', headers=headers)
        assert response.status_code == 403
        assert response.json()['detail'] == domain_rejection_message()

        revoked = db_session.query(RevokedSession).one()
        assert revoked.email == 'warden@gmail.com'

        # Session is dead now, not merely forbidden
        response = client.get('/api/admin/complaints', headers=headers)
        assert response.status_code == 401

    def test_domain_rejection_maps_to_403(self):
        error = to_http_exception(AuthorizationError(domain_rejection_message()))
        assert error.status_code == 403
        assert '@iiti.ac.in' in error.detail

    def test_missing_token_is_rejected(self, client):
        response = client.get('/api/complaints')
        assert response.status_code in (401, 403)

    def test_expired_token_is_rejected(self, client, student):
        token = create_identity_token('200101001@iiti.ac.in', expires_delta=timedelta(minutes=-5))
        response = client.get('/api/students/me', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_student_cannot_use_admin_routes(self, client, student_headers):
        response = client.get('/api/admin/complaints', headers=student_headers)
        assert response.status_code == 403

    def test_admin_can_use_guard_routes(self, client, admin_headers, student):
        response = client.get('/api/guard/status/200101001', headers=admin_headers)
        assert response.status_code == 200


class TestSession:
    """Tests for sign-out and /me"""

    def test_sign_out_revokes_token(self, client, student_headers):
        assert client.get('/api/students/me', headers=student_headers).status_code == 200
        assert client.post('/api/auth/sign-out', headers=student_headers).json() == {'success': True}
        assert client.get('/api/students/me', headers=student_headers).status_code == 401
        # Second sign-out is harmless
        assert client.post('/api/auth/sign-out', headers=student_headers).status_code == 200

    def test_me_reports_roll_and_role(self, client, student_headers):
        data = client.get('/api/auth/me', headers=student_headers).json()
        assert data == {'email': '200101001@iiti.ac.in', 'rollNo': '200101001', 'role': 'student'}
