"""
Shared fixtures for API and service tests.

Environment variables are set before any application module is imported,
since config.py reads them at import time. Every test gets a fresh in-memory
SQLite database; object storage and the mail relay are replaced by fakes
that record calls.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-read-secret"
os.environ["ADMIN_JWT_SECRET"] = "test-admin-secret"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "s3cret"
os.environ["COOKIE_SECURE"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://library.test"
os.environ["MAX_UPLOAD_BYTES"] = "1024"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, get_db
from errors import MailError, StorageError
from main import create_app
from services.mailer import get_mailer
from services.storage import get_storage


class FakeStorage:
    def __init__(self):
        self.uploads = []
        self.fail = False

    def upload_pdf(self, filename, data):
        if self.fail:
            raise StorageError("bucket unavailable")
        self.uploads.append((filename, data))
        return f"https://storage.test/{filename}"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_access_code(self, to, user_name, book_title, access_code, list_url, expires_at):
        if self.fail:
            raise MailError("relay down")
        self.sent.append({
            "to": to,
            "user_name": user_name,
            "book_title": book_title,
            "access_code": access_code,
            "list_url": list_url,
            "expires_at": expires_at,
        })


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(session_factory, storage, mailer):
    app = create_app(create_tables=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_mailer] = lambda: mailer
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/login", json={"username": "admin", "password": "s3cret"})
    assert resp.status_code == 200
    return client


@pytest.fixture
def make_book(db_session):
    def _make_book(title="Test Book", file_url="https://storage.test/test.pdf", **kwargs):
        book = models.Book(title=title, file_url=file_url, **kwargs)
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book
    return _make_book


@pytest.fixture
def make_loan(db_session, make_book):
    def _make_loan(book=None, email="reader@example.com", duration_days=3, **kwargs):
        book = book or make_book()
        loan = models.LoanRequest(
            user_name=kwargs.pop("user_name", "Reader"),
            email=email,
            book_id=book.id,
            duration_days=duration_days,
            **kwargs,
        )
        db_session.add(loan)
        db_session.commit()
        db_session.refresh(loan)
        return loan
    return _make_loan
