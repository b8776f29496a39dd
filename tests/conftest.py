"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown
- Attachment storage in a temporary directory
- Candidate service and FastAPI test client
"""

import pytest
from fastapi.testclient import TestClient

from referral_tracker.core.config import Settings
from referral_tracker.core.database import Base, Database, get_db
from referral_tracker.core.security import create_access_token
from referral_tracker.core.storage import LocalStorage
from referral_tracker.crud.candidate import SQLAlchemyCandidateRepository
from referral_tracker.models.user import User
from referral_tracker.services.candidate_service import AttachmentUpload, CandidateService
from main import create_app


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"


@pytest.fixture
def database():
    """Fresh in-memory database with all tables created."""
    db = Database(SQLALCHEMY_TEST_DATABASE_URL)
    db.startup(create_tables=True)
    yield db
    Base.metadata.drop_all(bind=db.engine)
    db.shutdown()


@pytest.fixture
def db_session(database):
    """
    Create a fresh database session for each test.
    """
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path):
    """Local attachment storage rooted in a per-test directory."""
    return LocalStorage(base_dir=str(tmp_path / "uploads"), timeout=5)


@pytest.fixture
def service(db_session, storage):
    return CandidateService(SQLAlchemyCandidateRepository(db_session), storage)


@pytest.fixture
def client(database, db_session, storage):
    """
    FastAPI test client sharing the test session and storage.
    """
    test_settings = Settings(CONFIGURE_LOGGING=False, AUTO_CREATE_TABLES=True)
    app = create_app(settings=test_settings, database=database, storage=storage)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def referrer(db_session):
    """An employee who can be credited with referrals."""
    user = User(name="Alice Referrer", email="alice@company.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(referrer):
    token = create_access_token({"sub": str(referrer.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_candidate_data():
    """Sample referral data for testing"""
    return {
        "name": "Jane Doe",
        "email": "JANE@Example.com",
        "phone": "+1-555-0100",
        "job_title": "Engineer",
    }


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def resume(pdf_bytes):
    return AttachmentUpload(content=pdf_bytes, filename="jane_doe.pdf", mime_type="application/pdf")
