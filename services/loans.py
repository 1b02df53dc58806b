"""
Loan Workflow Service
Core business logic for loan requests: creation, approval, rejection and
access-code redemption.

Approval is the only multi-step operation. The status change, token/code
issuance and expiry are written in a single transaction; the access-code email
goes out only after that transaction commits. A failed send after a successful
commit is reported to the caller (MailError) while the approval stays
persisted. Re-approving an already approved loan re-issues a fresh code and
re-sends the email.

Collaborators (session, mailer) are passed in explicitly so callers and tests
can substitute them.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import create_book_access_token
from config import ACCESS_CODE_MAX_ATTEMPTS
from errors import DatabaseError, ExpiredError, LoanStateError, NotFoundError, ValidationError
from models import Book, LoanRequest, utcnow

logger = logging.getLogger(__name__)

APPROVABLE_STATUSES = ("pending", "approved")
REJECTABLE_STATUSES = ("pending", "approved")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def generate_access_code() -> str:
    """Return a short human-enterable code: 8 uppercase hex characters."""
    return secrets.token_hex(4).upper()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _access_code_taken(db: Session, code: str) -> bool:
    return db.query(LoanRequest.id).filter(LoanRequest.access_code == code).first() is not None


def _new_unique_access_code(db: Session) -> str:
    for _ in range(ACCESS_CODE_MAX_ATTEMPTS):
        code = generate_access_code()
        if not _access_code_taken(db, code):
            return code
        logger.warning("Generated access code already in use, retrying")
    raise DatabaseError(f"Could not generate a unique access code after {ACCESS_CODE_MAX_ATTEMPTS} attempts")


def _get_loan(db: Session, loan_id: str, for_update: bool = False) -> LoanRequest:
    query = db.query(LoanRequest).filter(LoanRequest.id == loan_id)
    if for_update:
        query = query.with_for_update()
    loan = query.first()
    if not loan:
        raise NotFoundError(f"Loan request not found: {loan_id}")
    return loan


# ============================================================================
# CREATION & LISTING
# ============================================================================

def create_loan_request(
    db: Session,
    user_name: str,
    email: str,
    book_id: str,
    duration_days: int,
    class_name: Optional[str] = None,
) -> LoanRequest:
    """
    Insert a pending loan request.

    Raises:
        ValidationError: a required field is missing or duration is not positive
        NotFoundError: the referenced book does not exist
    """
    if not user_name or not email or not book_id or not duration_days:
        raise ValidationError("Missing required fields")
    if duration_days < 1:
        raise ValidationError("Duration must be at least one day")

    if not db.query(Book.id).filter(Book.id == book_id).first():
        raise NotFoundError(f"Book not found: {book_id}")

    loan = LoanRequest(
        user_name=user_name,
        email=email,
        class_name=class_name or None,
        book_id=book_id,
        duration_days=duration_days,
        status="pending",
    )
    db.add(loan)
    db.commit()
    db.refresh(loan)

    logger.info(f"Loan request {loan.id} created for book {book_id} ({duration_days} days)")
    return loan


def list_loan_requests(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(LoanRequest, Book.title)
        .join(Book, LoanRequest.book_id == Book.id)
        .order_by(LoanRequest.created_at.desc())
        .all()
    )
    return [
        {
            "id": loan.id,
            "user_name": loan.user_name,
            "email": loan.email,
            "class_name": loan.class_name,
            "duration_days": loan.duration_days,
            "status": loan.status,
            "book_title": title,
            "created_at": loan.created_at,
            "expires_at": loan.expires_at,
        }
        for loan, title in rows
    ]


def list_loans_for_email(db: Session, email: str) -> List[Dict[str, Any]]:
    if not email:
        raise ValidationError("Email is required")
    rows = (
        db.query(LoanRequest.id, LoanRequest.status, Book.title, Book.thumbnail_url)
        .join(Book, LoanRequest.book_id == Book.id)
        .filter(LoanRequest.email == email)
        .order_by(LoanRequest.created_at.desc())
        .all()
    )
    return [
        {"loan_id": loan_id, "status": status, "title": title, "thumbnail_url": thumbnail_url}
        for loan_id, status, title, thumbnail_url in rows
    ]


# ============================================================================
# APPROVAL
# ============================================================================

def _approve_once(db: Session, loan_id: str) -> Dict[str, Any]:
    """Run one approval transaction. Does NOT send mail."""
    loan = _get_loan(db, loan_id, for_update=True)
    if loan.status not in APPROVABLE_STATUSES:
        raise LoanStateError(f"Loan request {loan_id} is '{loan.status}' and cannot be approved")

    book = db.query(Book).filter(Book.id == loan.book_id).first()
    if not book:
        raise NotFoundError(f"Book not found: {loan.book_id}")

    now = utcnow()
    expires_at = now + timedelta(days=loan.duration_days)
    token = create_book_access_token(loan.id, loan.book_id, loan.email, expires_at)
    code = _new_unique_access_code(db)

    loan.status = "approved"
    loan.approved_at = now
    loan.access_token = token
    loan.access_code = code
    loan.expires_at = expires_at
    db.commit()

    return {
        "loan_id": loan.id,
        "email": loan.email,
        "user_name": loan.user_name,
        "book_title": book.title,
        "access_code": code,
        "approved_at": now,
        "expires_at": expires_at,
    }


def approve_loan(db: Session, loan_id: str, mailer, list_url: str) -> Dict[str, Any]:
    """
    Approve a loan request and email its access code to the requester.

    Steps:
    1. Lock the loan row (SELECT ... FOR UPDATE) and check its status
    2. Compute expiry = now + duration_days and mint the access token
    3. Generate a unique access code (retrying on collision)
    4. Persist status/approved_at/token/code/expiry and commit
    5. Send exactly one email with the code

    Args:
        db: Database session
        loan_id: ID of the loan request
        mailer: object with send_access_code(...)
        list_url: link to the loan list page included in the email

    Returns:
        Dictionary with loan_id, access_code, approved_at, expires_at

    Raises:
        NotFoundError: loan (or its book) does not exist; nothing is written, no mail sent
        LoanStateError: loan is rejected/renewed/expired
        DatabaseError: no unique access code could be stored
        MailError: approval committed but the email could not be delivered
    """
    logger.info(f"Approving loan request {loan_id}")

    result = None
    for attempt in range(1, ACCESS_CODE_MAX_ATTEMPTS + 1):
        try:
            result = _approve_once(db, loan_id)
            break
        except IntegrityError as e:
            # Another transaction took the same access code between check and commit
            db.rollback()
            logger.warning(f"Access code collision approving {loan_id} (attempt {attempt}): {e.orig}")
        except Exception:
            db.rollback()
            raise

    if result is None:
        raise DatabaseError(f"Could not store a unique access code for loan {loan_id}")

    logger.info(f"Loan request {loan_id} approved until {result['expires_at'].isoformat()}")

    mailer.send_access_code(
        to=result["email"],
        user_name=result["user_name"],
        book_title=result["book_title"],
        access_code=result["access_code"],
        list_url=list_url,
        expires_at=result["expires_at"],
    )
    return result


def reject_loan(db: Session, loan_id: str) -> LoanRequest:
    """Move a pending or approved loan to 'rejected'. Its read token stops working."""
    try:
        loan = _get_loan(db, loan_id, for_update=True)
        if loan.status not in REJECTABLE_STATUSES:
            raise LoanStateError(f"Loan request {loan_id} is '{loan.status}' and cannot be rejected")
        loan.status = "rejected"
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    logger.info(f"Loan request {loan_id} rejected")
    return loan


# ============================================================================
# REDEMPTION
# ============================================================================

def redeem_access_code(db: Session, access_code: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Exchange an access code for the stored access token.

    The code is not consumed and not invalidated on expiry; expiry is only
    checked here, lazily.

    Raises:
        ValidationError: no code given
        NotFoundError: no approved loan carries this code
        ExpiredError: the loan's expiry timestamp is in the past
    """
    if not access_code or not access_code.strip():
        raise ValidationError("Access code is required")

    code = access_code.strip().upper()
    loan = (
        db.query(LoanRequest)
        .filter(LoanRequest.access_code == code, LoanRequest.status == "approved")
        .first()
    )
    if not loan:
        logger.warning("Redemption attempted with an unknown access code")
        raise NotFoundError("Invalid access code")

    now = now or utcnow()
    expires_at = as_utc(loan.expires_at)
    if expires_at is None or expires_at < now:
        logger.warning(f"Redemption attempted for expired loan {loan.id}")
        raise ExpiredError("Access code has expired")

    logger.info(f"Access code redeemed for loan {loan.id}")
    return loan.access_token
