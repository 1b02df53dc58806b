"""
SQLAlchemy models for books and loan requests.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from config import DEFAULT_LOAN_DAYS
from database import Base

LOAN_STATUSES = ("pending", "approved", "rejected", "renewed", "expired")


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Book(Base):
    __tablename__ = "books"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    synopsis = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    file_url = Column(Text, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    loan_requests = relationship(
        "LoanRequest",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class LoanRequest(Base):
    __tablename__ = "loan_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in LOAN_STATUSES) + ")",
            name="ck_loan_requests_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, index=True)
    class_name = Column("class", Text, nullable=True)
    book_id = Column(String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    duration_days = Column(Integer, nullable=False, default=DEFAULT_LOAN_DAYS)
    status = Column(String(16), nullable=False, default="pending")
    access_token = Column(Text, nullable=True)
    access_code = Column(String(16), unique=True, nullable=True)
    ip_lock = Column(Text, nullable=True)  # reserved, never written
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    renewed_at = Column(DateTime(timezone=True), nullable=True)

    book = relationship("Book", back_populates="loan_requests")
