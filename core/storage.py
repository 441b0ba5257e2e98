"""
core/storage.py -- Object storage for uploaded avatars, logos and resumes.

Two backends share one interface, save(folder, data, extension) -> public URL:

  LocalStorage   writes under UPLOAD_DIR/<folder>/ and returns a URL below
                 MEDIA_URL_PREFIX; api/main.py serves that prefix as static files.
  RemoteStorage  POSTs the bytes to an unsigned multipart upload endpoint
                 (Cloudinary-style: file + upload_preset + folder) with requests
                 and returns the secure_url from the JSON reply.

Content checks happen before any bytes are stored: validate_upload() maps the
declared content type to a file extension and enforces the size cap.

Layer rule: core/ is the kernel. No imports from api/, auth/, or board/.
"""

import logging
import secrets
import time
from pathlib import Path
from typing import Optional, Protocol

import requests

from core.config import Settings, get_settings

logger = logging.getLogger("jobboard.storage")

IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
}

DOCUMENT_TYPES = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}

# Module-level session for connection pooling. Upload endpoints are known hosts,
# so 3 redirects is generous.
_session = requests.Session()
_session.max_redirects = 3


class StorageError(Exception):
    """Raised when an upload cannot be stored. code is the stable API error code."""

    code = "upload_failed"


class UnsupportedFileType(StorageError):
    code = "unsupported_file_type"


class FileTooLarge(StorageError):
    code = "file_too_large"


def validate_upload(content_type: Optional[str], size: int, allowed: dict[str, str], max_bytes: int) -> str:
    """Return the file extension for content_type or raise.

    Raises:
        UnsupportedFileType: content_type is not one of allowed.
        FileTooLarge:        size exceeds max_bytes.
    """
    extension = allowed.get((content_type or "").lower())
    if extension is None:
        kinds = ", ".join(sorted({ext.lstrip(".").upper() for ext in allowed.values()}))
        raise UnsupportedFileType(f"Only {kinds} files are allowed.")
    if size > max_bytes:
        raise FileTooLarge(f"File exceeds the {max_bytes // (1024 * 1024)} MB limit.")
    return extension


def _unique_name(extension: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{extension}"


class Storage(Protocol):
    def save(self, folder: str, data: bytes, extension: str) -> str: ...


class LocalStorage:
    """Filesystem backend. Files are never overwritten; each save gets a fresh name."""

    def __init__(self, root: str, url_prefix: str = "/media") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, folder: str, data: bytes, extension: str) -> str:
        target_dir = self.root / folder
        name = _unique_name(extension)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / name).write_bytes(data)
        except OSError as e:
            logger.error("Could not write upload to %s: %s", target_dir, e)
            raise StorageError("Upload failed.") from e
        return f"{self.url_prefix}/{folder}/{name}"


class RemoteStorage:
    """HTTP backend for an unsigned multipart upload endpoint."""

    def __init__(self, upload_url: str, preset: str = "") -> None:
        self.upload_url = upload_url
        self.preset = preset

    def save(self, folder: str, data: bytes, extension: str) -> str:
        form = {"folder": folder}
        if self.preset:
            form["upload_preset"] = self.preset
        try:
            resp = _session.post(
                self.upload_url,
                files={"file": (_unique_name(extension), data)},
                data=form,
                timeout=30,
            )
            resp.raise_for_status()
            url = resp.json().get("secure_url") or resp.json().get("url")
        except (requests.RequestException, ValueError) as e:
            logger.warning("Remote upload to %s failed: %s", self.upload_url, e)
            raise StorageError("Upload failed.") from e
        if not url:
            logger.warning("Remote upload to %s returned no URL", self.upload_url)
            raise StorageError("Upload failed.")
        return url


def get_storage(settings: Optional[Settings] = None) -> Storage:
    """Build the backend selected by STORAGE_BACKEND."""
    settings = settings or get_settings()
    if settings.storage_backend == "remote":
        if not settings.storage_remote_url:
            raise ValueError("STORAGE_REMOTE_URL is required when STORAGE_BACKEND=remote.")
        return RemoteStorage(settings.storage_remote_url, settings.storage_remote_preset)
    return LocalStorage(settings.upload_dir, settings.media_url_prefix)
