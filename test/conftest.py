"""
Hostel Management API - Test Configuration and Fixtures
"""
import os
import tempfile

import pytest

# Set testing environment before config is imported
_tmp_dir = tempfile.mkdtemp(prefix="hostel-test-")
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['INSTITUTE_EMAIL_DOMAIN'] = 'iiti.ac.in'
os.environ['IDENTITY_TOKEN_SECRET'] = 'test-identity-secret-for-testing-only'
os.environ['RATE_LIMIT_PER_MINUTE'] = '0'
os.environ['RATE_LIMIT_PER_HOUR'] = '0'
os.environ['USE_S3'] = 'false'
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['COUNSELOR_EMAIL'] = 'counselor@iiti.ac.in'
os.environ['UPLOADS_DIR'] = os.path.join(_tmp_dir, 'uploads')
os.environ['LOG_FILE'] = os.path.join(_tmp_dir, 'logs', 'test.log')

from fastapi.testclient import TestClient

import config
from app import app
from auth.security import create_identity_token
from database.connection import Database
from database.models import AppRole, AppUser, Student
from storage.blob_store import LocalBlobStore

ADMIN_EMAIL = 'warden@iiti.ac.in'
GUARD_EMAIL = 'gate1@iiti.ac.in'
STUDENT_EMAIL = '200101001@iiti.ac.in'


def make_token(email: str, verified: bool = True) -> str:
    return create_identity_token(email, verified=verified)


def bearer(email: str, verified: bool = True) -> dict:
    return {'Authorization': f'Bearer {make_token(email, verified)}'}


@pytest.fixture(scope='function')
def database():
    """Fresh in-memory database for each test"""
    db = Database('sqlite://')
    db.create_tables()
    config.db = db
    yield db
    db.drop_tables()
    db.engine.dispose()
    config.db = None


@pytest.fixture
def db_session(database):
    """Session for arranging and inspecting test data"""
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(database, tmp_path):
    """Test client without lifespan start-up (database and blob store are set here)"""
    config.blob_store = LocalBlobStore(tmp_path)
    app.state.mail = None
    yield TestClient(app)
    config.blob_store = None


def add_student(db_session, roll_no, room_number=None, hostel_block='A', full_name=None):
    student = Student(
        roll_no=roll_no,
        email=f'{roll_no}@iiti.ac.in',
        full_name=full_name or f'Student {roll_no}',
        department='CSE',
        batch=2020,
        room_number=room_number,
        hostel_block=hostel_block,
        fees_paid=True,
        emergency_contact='9876543210',
    )
    db_session.add(student)
    db_session.commit()
    db_session.refresh(student)
    return student


def add_role(db_session, email, role):
    user = AppUser(email=email, role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def student(db_session) -> Student:
    """Student 200101001 living in A-101"""
    return add_student(db_session, '200101001', room_number='A-101', full_name='Asha Verma')


@pytest.fixture
def other_student(db_session) -> Student:
    return add_student(db_session, '200101002', room_number='A-103', full_name='Ravi Kumar')


@pytest.fixture
def student_headers(student) -> dict:
    return bearer(STUDENT_EMAIL)


@pytest.fixture
def admin_headers(db_session) -> dict:
    add_role(db_session, ADMIN_EMAIL, AppRole.ADMIN)
    return bearer(ADMIN_EMAIL)


@pytest.fixture
def guard_headers(db_session) -> dict:
    add_role(db_session, GUARD_EMAIL, AppRole.GUARD)
    return bearer(GUARD_EMAIL)
