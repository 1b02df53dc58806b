import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from auth import READ_COOKIE_NAME, require_admin
from config import MAX_UPLOAD_BYTES
from database import get_db
from errors import AuthError, ExpiredError, NotFoundError, StorageError, ValidationError
from schemas import BookListItem, ErrorResponse, ReadBookResponse, UploadResponse
from services.books import create_book, get_readable_book, list_books
from services.storage import get_storage

logger = logging.getLogger(__name__)

# the status.HTTP_413_* name differs across Starlette releases
HTTP_413_TOO_LARGE = 413

router = APIRouter(
    prefix="/api",
    tags=["Books"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad request"},
        404: {"model": ErrorResponse, "description": "Not found"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_book(
    request: Request,
    title: Optional[str] = Query(None),
    synopsis: Optional[str] = Query(None),
    thumbnail_url: Optional[str] = Query(None),
    filename: Optional[str] = Query(None),
    admin: dict = Depends(require_admin),
    db: Session = Depends(get_db),
    storage=Depends(get_storage),
):
    """
    Upload a PDF (raw request body) with its metadata in the query string.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=HTTP_413_TOO_LARGE, detail="File too large")

    data = await request.body()
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=HTTP_413_TOO_LARGE, detail="File too large")

    try:
        # create_book blocks on the storage upload
        book = await run_in_threadpool(
            create_book,
            db,
            storage,
            title=title,
            filename=filename,
            data=data,
            synopsis=synopsis,
            thumbnail_url=thumbnail_url,
        )
        return UploadResponse(message="Book uploaded successfully", book_id=book.id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"Error uploading book '{title}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload book to storage",
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error saving book '{title}': {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save book",
        )


@router.get("/books", response_model=List[BookListItem])
def get_books(db: Session = Depends(get_db)):
    try:
        return [BookListItem.model_validate(b) for b in list_books(db)]
    except SQLAlchemyError as e:
        logger.error(f"Error fetching books: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


@router.get("/read-book", response_model=ReadBookResponse)
def read_book(request: Request, token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """
    Resolve a book access token (query string, else the read-session cookie)
    into the book title and file URL.
    """
    token = token or request.cookies.get(READ_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token not found")

    try:
        return ReadBookResponse(**get_readable_book(db, token))
    except ExpiredError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your reading session has expired")
    except AuthError as e:
        logger.warning(f"Read token rejected: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    except SQLAlchemyError as e:
        logger.error(f"Error resolving read token: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
