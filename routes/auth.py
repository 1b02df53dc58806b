"""
Admin authentication routes: login and logout.
"""

import logging
from fastapi import APIRouter, HTTPException, Response, status

from auth import ADMIN_COOKIE_NAME, check_admin_credentials, create_admin_token
from config import ADMIN_TOKEN_DAYS, COOKIE_SECURE
from schemas import LoginRequest, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Authentication"],
)


@router.post("/login", response_model=MessageResponse)
async def login(request: LoginRequest, response: Response):
    """
    Check admin credentials and set the admin session cookie.
    """
    if not check_admin_credentials(request.username, request.password):
        logger.warning(f"Failed admin login for username: {request.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    token = create_admin_token()
    response.set_cookie(
        ADMIN_COOKIE_NAME,
        token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=ADMIN_TOKEN_DAYS * 24 * 60 * 60,
    )
    logger.info(f"Admin logged in: {request.username}")
    return MessageResponse(message="Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(ADMIN_COOKIE_NAME)
    return MessageResponse(message="Logged out")
