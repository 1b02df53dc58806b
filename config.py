"""
Application configuration loaded from the environment (and an optional .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./library.db")

# Token signing
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
ADMIN_JWT_SECRET = os.getenv("ADMIN_JWT_SECRET", "change-me-too")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Admin credentials
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
ADMIN_TOKEN_DAYS = int(os.getenv("ADMIN_TOKEN_DAYS", "3"))

# Object storage (Supabase)
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_BUCKET = os.getenv("SUPABASE_BUCKET", "librarry-asset")
STORAGE_TIMEOUT = int(os.getenv("STORAGE_TIMEOUT", "30"))

# Mail relay
EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "20"))
MAIL_SENDER_NAME = os.getenv("MAIL_SENDER_NAME", "Digital Library")

# Web
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
COOKIE_SECURE = _get_bool("COOKIE_SECURE", ENVIRONMENT == "production")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "public"))

# Loans
DEFAULT_LOAN_DAYS = int(os.getenv("DEFAULT_LOAN_DAYS", "3"))
ACCESS_CODE_MAX_ATTEMPTS = int(os.getenv("ACCESS_CODE_MAX_ATTEMPTS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "3000"))
