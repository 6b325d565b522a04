"""
File storage for uploaded certificates and profile images.

Two backends share one interface:
- LocalStorage writes under the uploads directory (served at /uploads)
- SupabaseStorage pushes to a Supabase Storage bucket over its REST API
"""
import os
import random
import time
import logging
from typing import Optional

import aiofiles
import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class StorageError(Exception):
    """Raised when the storage backend cannot complete an operation"""


class InvalidUpload(ValueError):
    """Raised when an uploaded file is rejected before storage"""


def generate_filename(original_filename: Optional[str]) -> str:
    """Unique name '<epoch-ms>-<random><ext>', keeping the original extension."""
    ext = os.path.splitext(original_filename or "")[1].lower()
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{unique_suffix}{ext}"


def validate_upload(content_type: Optional[str], size: int, max_size: int, allow_pdf: bool = True) -> None:
    content_type = content_type or ""
    allowed = content_type.startswith("image/") or (allow_pdf and content_type == PDF_CONTENT_TYPE)
    if not allowed:
        if allow_pdf:
            raise InvalidUpload("Only images and PDF files are allowed!")
        raise InvalidUpload("Only image files are allowed!")
    if size == 0:
        raise InvalidUpload("Uploaded file is empty")
    if size > max_size:
        raise InvalidUpload(f"File size must be less than {max_size // (1024 * 1024)}MB")


class StorageBackend:
    async def save(self, content: bytes, filename: str, content_type: str, folder: str) -> str:
        """Store bytes and return the storage key."""
        raise NotImplementedError

    async def read(self, key: str) -> bytes:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    def url_for(self, key: str) -> str:
        raise NotImplementedError


class LocalStorage(StorageBackend):
    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    async def save(self, content: bytes, filename: str, content_type: str, folder: str) -> str:
        key = f"{folder}/{generate_filename(filename)}"
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        async with aiofiles.open(path, "wb") as f:
            await f.write(content)

        logger.info("Saved %d bytes to local storage: %s", len(content), key)
        return key

    async def read(self, key: str) -> bytes:
        path = self._path(key)
        if not os.path.exists(path):
            raise StorageError(f"File not found: {key}")
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
            logger.info("Deleted local file: %s", key)

    def url_for(self, key: str) -> str:
        return f"/uploads/{key}"


class SupabaseStorage(StorageBackend):
    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not url or not service_key:
            raise StorageError("Supabase configuration missing")
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    async def save(self, content: bytes, filename: str, content_type: str, folder: str) -> str:
        key = f"{folder}/{generate_filename(filename)}"
        headers = self._headers()
        # Supabase rejects chunked uploads, Content-Length must be explicit
        headers.update({
            "Content-Type": content_type or "application/octet-stream",
            "Content-Length": str(len(content)),
        })
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.url}/storage/v1/object/{self.bucket}/{key}",
                    headers=headers,
                    content=content
                )
        except httpx.TimeoutException:
            raise StorageError("Upload timeout - file too large or slow connection")
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed: {e}")

        if response.status_code not in (200, 201):
            error_detail = response.text[:500] if response.text else "Unknown error"
            raise StorageError(f"Supabase upload failed ({response.status_code}): {error_detail}")

        logger.info("Uploaded %d bytes to Supabase: %s", len(content), key)
        return key

    async def read(self, key: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.url}/storage/v1/object/{self.bucket}/{key}",
                    headers=self._headers()
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Download failed: {e}")

        if response.status_code != 200:
            raise StorageError(f"Supabase download failed ({response.status_code}) for {key}")
        return response.content

    async def delete(self, key: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.delete(
                    f"{self.url}/storage/v1/object/{self.bucket}/{key}",
                    headers=self._headers()
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Delete failed: {e}")

        # Already gone is fine
        if response.status_code not in (200, 204, 404):
            raise StorageError(f"Supabase delete failed ({response.status_code}) for {key}")

    def url_for(self, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"


_storage: Optional[StorageBackend] = None


def get_storage() -> StorageBackend:
    """Storage backend selected by settings, created once."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_backend == "supabase":
            _storage = SupabaseStorage(
                url=settings.supabase_url,
                service_key=settings.supabase_service_role_key,
                bucket=settings.supabase_bucket
            )
        else:
            _storage = LocalStorage(settings.upload_dir)
        logger.info("Using %s storage backend", type(_storage).__name__)
    return _storage
