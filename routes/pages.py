"""
HTML page routes served from the public/ directory.
"""

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from auth import READ_COOKIE_NAME, peek_token_expiry, require_admin
from config import COOKIE_SECURE, PUBLIC_DIR

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"], include_in_schema=False)


def _page(name: str) -> FileResponse:
    return FileResponse(os.path.join(PUBLIC_DIR, name), media_type="text/html")


@router.get("/")
def index_page():
    return _page("index.html")


@router.get("/login")
def login_page():
    return _page("login.html")


@router.get("/listbook")
def listbook_page():
    return _page("listbook.html")


@router.get("/dashboard")
def dashboard_page(admin: dict = Depends(require_admin)):
    return _page("dashboard.html")


@router.get("/read")
def read_page(token: Optional[str] = Query(None)):
    """Serve the reader; cache the token in a cookie that expires with it."""
    response = _page("read.html")
    if token:
        expires = peek_token_expiry(token)
        if expires is not None:
            response.set_cookie(
                READ_COOKIE_NAME,
                token,
                httponly=True,
                secure=COOKIE_SECURE,
                samesite="strict",
                expires=expires,
            )
    return response
