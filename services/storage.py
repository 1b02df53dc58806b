"""
Object storage client for uploaded book files (Supabase Storage REST API).
"""

import logging
import re
import time
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

import requests

from config import STORAGE_TIMEOUT, SUPABASE_ANON_KEY, SUPABASE_BUCKET, SUPABASE_URL
from errors import StorageError

logger = logging.getLogger(__name__)


def build_object_name(filename: str, now_ms: Optional[int] = None) -> str:
    """
    Build a collision-resistant object name from the client filename.

    Example:
        >>> build_object_name("My Book.pdf", now_ms=1700000000000)
        "1700000000000-My_Book.pdf"
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = re.sub(r"\s", "_", filename)
    return f"{now_ms}-{safe_name}"


class SupabaseStorage:
    def __init__(self, base_url: str, api_key: str, bucket: str, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout

    def public_url(self, object_name: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(object_name)}"

    def upload_pdf(self, filename: str, data: bytes) -> str:
        """
        Upload a PDF and return its public URL.

        Raises:
            StorageError: storage is not configured or the upload was refused
        """
        if not self.base_url or not self.api_key:
            raise StorageError("Object storage is not configured (SUPABASE_URL / SUPABASE_ANON_KEY)")

        object_name = build_object_name(filename)
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(object_name)}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
            "Content-Type": "application/pdf",
            "cache-control": "max-age=3600",
            "x-upsert": "false",
        }
        try:
            resp = requests.post(url, headers=headers, data=data, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Upload of {object_name} to bucket {self.bucket} failed: {e}")
            raise StorageError(f"Upload failed: {e}") from e

        logger.info(f"Uploaded {object_name} ({len(data)} bytes) to bucket {self.bucket}")
        return self.public_url(object_name)


@lru_cache(maxsize=1)
def get_storage() -> SupabaseStorage:
    return SupabaseStorage(SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_BUCKET, timeout=STORAGE_TIMEOUT)
