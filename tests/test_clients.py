"""
Tests for the external collaborators: Supabase storage and the SMTP mailer.

Network calls are replaced with monkeypatched fakes.
"""

from datetime import datetime, timezone

import pytest
import requests

import services.mailer as mailer_module
import services.storage as storage_module
from errors import MailError, StorageError
from services.mailer import SmtpMailer
from services.storage import SupabaseStorage, build_object_name


# =============================================================================
# Storage
# =============================================================================

class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_build_object_name_replaces_whitespace():
    assert build_object_name("My Great\tBook.pdf", now_ms=1700000000000) == "1700000000000-My_Great_Book.pdf"


def test_upload_pdf_posts_and_returns_public_url(monkeypatch):
    calls = []

    def fake_post(url, headers=None, data=None, timeout=None):
        calls.append({"url": url, "headers": headers, "data": data, "timeout": timeout})
        return FakeResponse()

    monkeypatch.setattr(storage_module.requests, "post", fake_post)
    monkeypatch.setattr(storage_module, "build_object_name", lambda filename: "1-book.pdf")

    storage = SupabaseStorage("https://proj.supabase.co/", "anon-key", "librarry-asset", timeout=5)
    url = storage.upload_pdf("book.pdf", b"%PDF")

    assert url == "https://proj.supabase.co/storage/v1/object/public/librarry-asset/1-book.pdf"
    assert calls[0]["url"] == "https://proj.supabase.co/storage/v1/object/librarry-asset/1-book.pdf"
    assert calls[0]["headers"]["Content-Type"] == "application/pdf"
    assert calls[0]["headers"]["x-upsert"] == "false"
    assert calls[0]["headers"]["Authorization"] == "Bearer anon-key"
    assert calls[0]["data"] == b"%PDF"
    assert calls[0]["timeout"] == 5


def test_upload_pdf_http_error(monkeypatch):
    monkeypatch.setattr(storage_module.requests, "post", lambda *a, **kw: FakeResponse(409))
    storage = SupabaseStorage("https://proj.supabase.co", "anon-key", "bucket")
    with pytest.raises(StorageError):
        storage.upload_pdf("book.pdf", b"%PDF")


def test_upload_pdf_connection_error(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("no route")

    monkeypatch.setattr(storage_module.requests, "post", boom)
    storage = SupabaseStorage("https://proj.supabase.co", "anon-key", "bucket")
    with pytest.raises(StorageError):
        storage.upload_pdf("book.pdf", b"%PDF")


def test_upload_pdf_unconfigured():
    with pytest.raises(StorageError):
        SupabaseStorage("", "", "bucket").upload_pdf("book.pdf", b"%PDF")


# =============================================================================
# Mailer
# =============================================================================

class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.messages.append(msg)


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def _mailer():
    return SmtpMailer("smtp.test", 465, "library@test", "pw", sender_name="Test Library", timeout=3)


def test_send_access_code(smtp):
    expires_at = datetime(2030, 1, 2, 3, 4, tzinfo=timezone.utc)
    _mailer().send_access_code(
        to="ana@example.com",
        user_name="Ana <script>",
        book_title="Dune",
        access_code="0123ABCD",
        list_url="http://library.test/listbook",
        expires_at=expires_at,
    )

    conn = smtp.instances[0]
    assert (conn.host, conn.port, conn.timeout) == ("smtp.test", 465, 3)
    assert conn.logged_in == ("library@test", "pw")

    msg = conn.messages[0]
    assert msg["To"] == "ana@example.com"
    assert "Dune" in msg["Subject"]
    assert "Test Library" in msg["From"]

    text_part = msg.get_body(preferencelist=("plain",)).get_content()
    html_part = msg.get_body(preferencelist=("html",)).get_content()
    assert "0123ABCD" in text_part
    assert "0123ABCD" in html_part
    assert "2030-01-02 03:04 UTC" in text_part
    assert "&lt;script&gt;" in html_part
    assert "http://library.test/listbook" in html_part


def test_send_failure_raises_mail_error(monkeypatch):
    class RefusingSMTP(FakeSMTP):
        def send_message(self, msg):
            raise mailer_module.smtplib.SMTPRecipientsRefused({msg["To"]: (550, b"no such user")})

    monkeypatch.setattr(mailer_module.smtplib, "SMTP_SSL", RefusingSMTP)
    with pytest.raises(MailError):
        _mailer().send_access_code("x@example.com", "X", "Dune", "0123ABCD", "http://l", datetime.now(timezone.utc))


def test_unconfigured_mailer(smtp):
    mailer = SmtpMailer("smtp.test", 465, "", "")
    with pytest.raises(MailError):
        mailer.send_access_code("x@example.com", "X", "Dune", "0123ABCD", "http://l", datetime.now(timezone.utc))
    assert smtp.instances == []
