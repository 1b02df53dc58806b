"""
Book catalogue service: upload, listing and read-token resolution.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from auth import decode_book_access_token
from errors import AuthError, NotFoundError, StorageError, ValidationError
from models import Book, LoanRequest

logger = logging.getLogger(__name__)


def create_book(
    db: Session,
    storage,
    title: Optional[str],
    filename: Optional[str],
    data: Optional[bytes],
    synopsis: Optional[str] = None,
    thumbnail_url: Optional[str] = None,
) -> Book:
    """
    Upload a book file to object storage and insert its catalogue row.

    Validation happens before any upload, so a rejected request leaves neither
    an object nor a row behind.

    Raises:
        ValidationError: title, filename or file body missing
        StorageError: the upload failed (no row is written)
        SQLAlchemyError: the insert failed after a successful upload
    """
    title = (title or "").strip()
    filename = (filename or "").strip()
    if not title or not filename or not data:
        raise ValidationError("Title, filename and file are required")

    file_url = storage.upload_pdf(filename, data)
    if not file_url:
        raise StorageError("Storage did not return a public URL")

    book = Book(
        title=title,
        synopsis=synopsis or None,
        thumbnail_url=thumbnail_url or None,
        file_url=file_url,
    )
    try:
        db.add(book)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Uploaded {file_url} but could not insert the book row", exc_info=True)
        raise

    db.refresh(book)
    logger.info(f"Book uploaded: {book.title} (id: {book.id})")
    return book


def list_books(db: Session) -> List[Book]:
    return db.query(Book).order_by(Book.uploaded_at.desc()).all()


def get_readable_book(db: Session, token: Optional[str]) -> Dict[str, str]:
    """
    Resolve a book access token into the book it unlocks.

    Raises:
        AuthError: token missing, invalid, or its loan is no longer approved
        ExpiredError: token signature valid but past its expiry
        NotFoundError: the loan's book no longer exists
    """
    if not token:
        raise AuthError("Token not found")

    payload = decode_book_access_token(token)
    loan_id = payload.get("loan_id")

    loan = (
        db.query(LoanRequest)
        .filter(LoanRequest.id == loan_id, LoanRequest.status == "approved")
        .first()
    )
    if not loan:
        logger.warning(f"Read token presented for loan {loan_id} which is not approved")
        raise AuthError("Access is not valid")

    book = db.query(Book).filter(Book.id == loan.book_id).first()
    if not book:
        raise NotFoundError("Book not found")

    return {"title": book.title, "file_url": book.file_url}
