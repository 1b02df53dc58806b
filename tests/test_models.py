"""
Schema-level constraints on books and loan requests.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from models import Book, LoanRequest


def test_loan_defaults(make_loan):
    loan = make_loan()
    assert loan.status == "pending"
    assert loan.duration_days == 3
    assert loan.created_at is not None
    assert loan.approved_at is None
    assert loan.ip_lock is None


def test_deleting_book_cascades_to_loans(db_session, make_book, make_loan):
    book = make_book()
    make_loan(book=book)
    make_loan(book=book, email="other@example.com")

    db_session.delete(book)
    db_session.commit()

    assert db_session.query(Book).count() == 0
    assert db_session.query(LoanRequest).count() == 0


def test_access_code_is_unique(db_session, make_loan):
    first = make_loan(status="approved", access_code="ABCDEF01")
    db_session.add(LoanRequest(user_name="B", email="b@example.com", book_id=first.book_id, access_code="ABCDEF01"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_status_is_constrained(db_session, make_book):
    book = make_book()
    db_session.add(LoanRequest(user_name="B", email="b@example.com", book_id=book.id, status="lost"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
