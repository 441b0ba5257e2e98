"""
api/routes/v1/uploads.py -- Multipart file uploads for profile media.

Routes:
  POST /api/v1/uploads/avatar  -- JPEG/PNG up to MAX_IMAGE_BYTES; user avatar or employer logo
  POST /api/v1/uploads/resume  -- PDF/DOC/DOCX up to MAX_DOCUMENT_BYTES; candidate only
  POST /api/v1/uploads/logo    -- JPEG/PNG up to MAX_IMAGE_BYTES; employer only

The form field is "file". At most cap + 1 bytes are read, so an oversized
upload is rejected without buffering the whole body. The stored file's URL is
written to the caller's profile and returned.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile

from api.errors import api_error
from api.models import Envelope, UploadOut
from auth.dependencies import get_current_principal, require_roles
from auth.models import KIND_EMPLOYER, ROLE_CANDIDATE, ROLE_EMPLOYER, Principal
from auth.store import PrincipalStore
from core.config import get_settings
from core.storage import DOCUMENT_TYPES, IMAGE_TYPES, Storage, StorageError, validate_upload

logger = logging.getLogger("jobboard.api.uploads")

_settings = get_settings()

# Auth policy:
# - POST /uploads/avatar:  any signed-in principal
# - POST /uploads/resume:  candidate
# - POST /uploads/logo:    employer
router = APIRouter()


def _store_upload(request: Request, upload: UploadFile, folder: str, allowed: dict[str, str], max_bytes: int) -> str:
    """Validate and persist one upload, translating storage errors into API errors."""
    storage: Storage = request.app.state.storage
    data = upload.file.read(max_bytes + 1)
    try:
        extension = validate_upload(upload.content_type, len(data), allowed, max_bytes)
        return storage.save(folder, data, extension)
    except StorageError as exc:
        status = 500 if exc.code == "upload_failed" else 400
        raise api_error(status, exc.code, str(exc)) from exc
    finally:
        upload.file.close()


@router.post("/uploads/avatar", response_model=Envelope[UploadOut])
def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
) -> Envelope[UploadOut]:
    """Profile picture. For an employer the image becomes its logo."""
    url = _store_upload(request, file, "avatars", IMAGE_TYPES, _settings.max_image_bytes)
    principals: PrincipalStore = request.app.state.principal_store
    if principal.kind == KIND_EMPLOYER:
        principals.update_employer(principal.id, logo=url)
        field = "logo"
    else:
        principals.update_user(principal.id, avatar=url)
        field = "avatar"
    logger.info("Uploaded %s for %s id=%d", field, principal.kind, principal.id)
    return Envelope(message="Profile picture uploaded successfully.", data=UploadOut(url=url, field=field))


@router.post("/uploads/resume", response_model=Envelope[UploadOut])
def upload_resume(
    request: Request,
    file: UploadFile = File(...),
    principal: Principal = Depends(require_roles(ROLE_CANDIDATE)),
) -> Envelope[UploadOut]:
    url = _store_upload(request, file, "resumes", DOCUMENT_TYPES, _settings.max_document_bytes)
    principals: PrincipalStore = request.app.state.principal_store
    principals.update_user(principal.id, resume=url)
    logger.info("Uploaded resume for user id=%d", principal.id)
    return Envelope(message="Resume uploaded successfully.", data=UploadOut(url=url, field="resume"))


@router.post("/uploads/logo", response_model=Envelope[UploadOut])
def upload_logo(
    request: Request,
    file: UploadFile = File(...),
    principal: Principal = Depends(require_roles(ROLE_EMPLOYER)),
) -> Envelope[UploadOut]:
    url = _store_upload(request, file, "logos", IMAGE_TYPES, _settings.max_image_bytes)
    principals: PrincipalStore = request.app.state.principal_store
    principals.update_employer(principal.id, logo=url)
    logger.info("Uploaded logo for employer id=%d", principal.id)
    return Envelope(message="Logo uploaded successfully.", data=UploadOut(url=url, field="logo"))
