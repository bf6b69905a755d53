"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from imageboard import models  # noqa: F401
from imageboard.config import Settings, get_settings
from imageboard.database import Base, get_db
from imageboard.main import app
from imageboard.models.enums import Permission
from imageboard.services.auth import create_user

# Use test database - MariaDB in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/imageboard", "/imageboard_test")
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"
ALL_PERMISSIONS = sum(int(permission) for permission in Permission)
# Everything except the bits that let a user act on objects they do not own
UPLOADER_PERMISSIONS = int(
    Permission.VIEW_IMAGES_AND_TAGS
    | Permission.UPLOAD_IMAGE
    | Permission.ADD_TAGS
    | Permission.ADD_COLLECTIONS
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(autouse=True)
def celery_tasks():
    """Keep Celery dispatches off the broker; tests assert on the mocks."""
    with (
        patch("imageboard.tasks.audit.record_audit_log.delay") as audit,
        patch("imageboard.tasks.audit.record_audit_log_by_name.delay") as audit_by_name,
        patch("imageboard.tasks.media.generate_image_thumbnail.delay") as thumbnail,
        patch("imageboard.tasks.media.generate_image_hash.delay") as image_hash,
    ):
        yield {
            "audit": audit,
            "audit_by_name": audit_by_name,
            "thumbnail": thumbnail,
            "hash": image_hash,
        }


@pytest.fixture
def settings(tmp_path):
    """Settings with storage under a per-test temporary directory."""
    return Settings(
        image_directory=str(tmp_path / "images"),
        thumbnail_directory=str(tmp_path / "thumbs"),
    )


@pytest.fixture(scope="function")
def client(db, settings):
    """Create a test client with database and settings overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory for accounts with a known password."""

    def _make_user(name: str = "alice", permissions: int = UPLOADER_PERMISSIONS):
        return create_user(db, name, TEST_PASSWORD, int(permissions))

    return _make_user


@pytest.fixture
def login(client):
    """Log a user on through the logon form; the client keeps the cookies."""

    def _login(name: str, password: str = TEST_PASSWORD):
        response = client.post(
            "/logon", data={"userName": name, "password": password}, follow_redirects=False
        )
        assert response.status_code == 302
        return response

    return _login


@pytest.fixture
def admin(make_user, login):
    """Logged-on account holding every permission."""
    user = make_user("admin", ALL_PERMISSIONS)
    login("admin")
    return user
