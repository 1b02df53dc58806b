"""
Pydantic request/response schemas for the loan portal API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    detail: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# AUTH
# ============================================================================

class LoginRequest(BaseModel):
    username: str
    password: str


# ============================================================================
# BOOKS
# ============================================================================

class BookListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    synopsis: Optional[str] = None
    thumbnail_url: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    book_id: str


class ReadBookResponse(BaseModel):
    title: str
    file_url: str


# ============================================================================
# LOANS
# ============================================================================

class LoanRequestCreate(BaseModel):
    """Loan request form. Field names match the public listing page (camelCase)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    class_name: Optional[str] = Field(None, alias="className")
    book_id: str = Field(..., min_length=1, alias="bookId")
    duration: int = Field(..., ge=1)


class LoanRequestCreated(BaseModel):
    success: bool = True
    message: str
    loan_id: str


class LoanRequestItem(BaseModel):
    id: str
    user_name: str
    email: str
    class_name: Optional[str] = None
    duration_days: int
    status: str
    book_title: str
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class MyBookItem(BaseModel):
    loan_id: str
    status: str
    title: str
    thumbnail_url: Optional[str] = None


class LoanDecisionResponse(BaseModel):
    success: bool = True
    message: str
    loan_id: str
    status: str
    expires_at: Optional[datetime] = None


class ReadTokenRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    access_code: Optional[str] = None


class ReadTokenResponse(BaseModel):
    success: bool = True
    token: str
