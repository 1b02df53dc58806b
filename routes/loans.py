"""
Loan routes: request, admin review (approve / reject), and access-code redemption.

These endpoints are thin wrappers around services/loans.py; they translate
service exceptions into HTTP status codes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from auth import require_admin
from config import PUBLIC_BASE_URL
from database import get_db
from errors import DatabaseError, ExpiredError, LoanStateError, MailError, NotFoundError, ValidationError
from schemas import (
    ErrorResponse,
    LoanDecisionResponse,
    LoanRequestCreate,
    LoanRequestCreated,
    LoanRequestItem,
    MyBookItem,
    ReadTokenRequest,
    ReadTokenResponse,
)
from services.loans import (
    approve_loan,
    create_loan_request,
    list_loan_requests,
    list_loans_for_email,
    redeem_access_code,
    reject_loan,
)
from services.mailer import get_mailer

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Loans"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad request"},
        404: {"model": ErrorResponse, "description": "Not found"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)


def _loan_list_url(request: Request) -> str:
    base = PUBLIC_BASE_URL or str(request.base_url).rstrip("/")
    return f"{base}/listbook"


@router.get("/my-books", response_model=List[MyBookItem])
def get_my_books(email: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        return list_loans_for_email(db, email)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Error fetching loans for {email}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/loan-request", response_model=LoanRequestCreated, status_code=status.HTTP_201_CREATED)
def request_loan(request: LoanRequestCreate, db: Session = Depends(get_db)):
    try:
        loan = create_loan_request(
            db,
            user_name=request.name,
            email=request.email,
            book_id=request.book_id,
            duration_days=request.duration,
            class_name=request.class_name,
        )
        return LoanRequestCreated(message="Loan request submitted", loan_id=loan.id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating loan request: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.get("/loan-requests", response_model=List[LoanRequestItem])
def get_loan_requests(admin: dict = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return list_loan_requests(db)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching loan requests: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/approve-loan/{loan_id}", response_model=LoanDecisionResponse)
def approve(
    loan_id: str,
    request: Request,
    admin: dict = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    """
    Approve a loan request: issue token + access code in one transaction,
    then email the code to the requester.

    A mail failure after the commit still returns 500; the loan stays approved
    and approving it again re-issues and re-sends the code.
    """
    try:
        result = approve_loan(db, loan_id, mailer, list_url=_loan_list_url(request))
        return LoanDecisionResponse(
            message="Loan approved and email sent",
            loan_id=result["loan_id"],
            status="approved",
            expires_at=result["expires_at"],
        )
    except NotFoundError as e:
        logger.warning(f"Approve failed: {e}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan request not found")
    except LoanStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except MailError as e:
        logger.error(f"Loan {loan_id} approved but the access code email failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Loan approved but the email could not be sent",
        )
    except (DatabaseError, SQLAlchemyError) as e:
        logger.error(f"Error approving loan {loan_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/reject-loan/{loan_id}", response_model=LoanDecisionResponse)
def reject(loan_id: str, admin: dict = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        loan = reject_loan(db, loan_id)
        return LoanDecisionResponse(message="Loan rejected", loan_id=loan.id, status=loan.status)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan request not found")
    except LoanStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Error rejecting loan {loan_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.post("/get-read-token", response_model=ReadTokenResponse)
def get_read_token(request: ReadTokenRequest, db: Session = Depends(get_db)):
    try:
        token = redeem_access_code(db, request.access_code)
        return ReadTokenResponse(token=token)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid access code")
    except ExpiredError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access code has expired")
    except SQLAlchemyError as e:
        logger.error(f"Error redeeming access code: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
