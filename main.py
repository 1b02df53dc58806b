"""
Digital library loan portal - FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from auth import ADMIN_COOKIE_NAME, AdminAuthRequired
from config import CORS_ORIGINS, LOG_LEVEL, PORT
from database import init_db
from routes import auth as auth_routes
from routes import books, loans, pages

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(create_tables: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            init_db()
            logger.info("Database tables are ready")
        yield

    app = FastAPI(
        lifespan=lifespan,
        title="Digital Library Loan Portal",
        description="Book uploads, loan requests, approvals and access-code redemption",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AdminAuthRequired)
    async def admin_auth_handler(request: Request, exc: AdminAuthRequired):
        if request.url.path.startswith("/api/"):
            response = JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail},
                headers={"Location": "/login"},
            )
        else:
            response = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
        response.delete_cookie(ADMIN_COOKIE_NAME)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in errors]
        logger.warning(f"Validation error on {request.url.path}: {fields}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Missing or invalid fields: {', '.join(f for f in fields if f)}"},
        )

    app.include_router(auth_routes.router)
    app.include_router(books.router)
    app.include_router(loans.router)
    app.include_router(pages.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=PORT)
