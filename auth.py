"""
Signed token handling for the admin session and for book access.

Two independent secrets are used: ADMIN_JWT_SECRET signs the admin session
cookie, JWT_SECRET signs the per-loan access token handed out on redemption.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Request, status

from config import (
    ADMIN_JWT_SECRET,
    ADMIN_PASSWORD,
    ADMIN_TOKEN_DAYS,
    ADMIN_USERNAME,
    JWT_ALGORITHM,
    JWT_SECRET,
)
from errors import AuthError, ExpiredError

logger = logging.getLogger(__name__)

ADMIN_COOKIE_NAME = "admin_token"
READ_COOKIE_NAME = "read_session_token"


class AdminAuthRequired(AuthError):
    """Raised by require_admin; main.py turns it into a 401/403 or a redirect to /login."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


# ============================================================================
# ADMIN SESSION
# ============================================================================

def check_admin_credentials(username: Optional[str], password: Optional[str]) -> bool:
    if not ADMIN_USERNAME or not ADMIN_PASSWORD:
        logger.warning("Admin login attempted but ADMIN_USERNAME/ADMIN_PASSWORD are not configured")
        return False
    user_ok = secrets.compare_digest((username or "").encode(), ADMIN_USERNAME.encode())
    pass_ok = secrets.compare_digest((password or "").encode(), ADMIN_PASSWORD.encode())
    return user_ok and pass_ok


def create_admin_token(expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ADMIN_TOKEN_DAYS))
    return jwt.encode({"role": "admin", "exp": expire}, ADMIN_JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_admin_token(token: str) -> Dict[str, Any]:
    """Decode an admin session token, raising AuthError unless it carries role=admin."""
    try:
        payload = jwt.decode(token, ADMIN_JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid admin token: {e}") from e
    if payload.get("role") != "admin":
        raise AuthError("Not an admin")
    return payload


async def require_admin(request: Request) -> Dict[str, Any]:
    """FastAPI dependency guarding admin routes with the admin_token cookie."""
    token = request.cookies.get(ADMIN_COOKIE_NAME)
    if not token:
        raise AdminAuthRequired(status.HTTP_401_UNAUTHORIZED, "Admin login required")
    try:
        return verify_admin_token(token)
    except AuthError as e:
        logger.warning(f"Rejected admin token on {request.url.path}: {e}")
        raise AdminAuthRequired(status.HTTP_403_FORBIDDEN, "Admin session is invalid or expired")


# ============================================================================
# BOOK ACCESS TOKEN
# ============================================================================

def create_book_access_token(loan_id: str, book_id: str, email: str, expires_at: datetime) -> str:
    payload = {
        "loan_id": loan_id,
        "book_id": book_id,
        "email": email,
        "exp": expires_at,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_book_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a book access token.

    Raises:
        ExpiredError: signature is valid but the token is past its exp
        AuthError: any other verification failure
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise ExpiredError("Your reading session has expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid access token: {e}") from e


def peek_token_expiry(token: str) -> Optional[datetime]:
    """Read the exp claim without verifying the signature (cookie lifetime only)."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError as e:
        logger.warning(f"Could not decode read token: {e}")
        return None
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)
