"""Stored files: upload bookkeeping, attachment resolution and downloads."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from django.conf import settings

from ..access import Principal, ensure_can_download_file
from ..exceptions import NotFound, ValidationError
from ..models import StoredFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_SIZE = 50 * 1024 * 1024


@dataclass(frozen=True)
class AttachmentRef:
    """Reference to an already uploaded file plus its display name."""

    file_id: int
    name: str = ""


def _max_upload_size() -> int:
    return int(getattr(settings, "ASSIGNMENTS_MAX_UPLOAD_SIZE", DEFAULT_MAX_UPLOAD_SIZE))


def _allowed_mimetypes() -> list[str]:
    return list(getattr(settings, "ASSIGNMENTS_ALLOWED_MIMETYPES", []))


def store_upload(principal: Principal, uploaded_file) -> StoredFile:
    """Validate an uploaded file and record it as owned by ``principal``."""

    mimetype = getattr(uploaded_file, "content_type", "") or ""
    allowed = _allowed_mimetypes()
    if allowed and mimetype not in allowed:
        raise ValidationError(
            f"File type not allowed: {mimetype or 'unknown'}",
            field_errors={"file": [f"Allowed types: {', '.join(allowed)}"]},
        )

    max_size = _max_upload_size()
    if uploaded_file.size > max_size:
        raise ValidationError(
            f"File size cannot exceed {max_size // (1024 * 1024)}MB",
            field_errors={"file": [f"{uploaded_file.size} bytes is over the limit"]},
        )

    stored = StoredFile.objects.create(
        original_name=uploaded_file.name,
        file=uploaded_file,
        mimetype=mimetype,
        size=uploaded_file.size,
        uploaded_by_id=principal.user_id,
    )
    logger.info(
        "File uploaded",
        extra={"file_id": stored.id, "user_id": principal.user_id, "size": stored.size},
    )
    return stored


def _coerce_ref(raw) -> AttachmentRef:
    if isinstance(raw, AttachmentRef):
        return raw
    if isinstance(raw, StoredFile):
        return AttachmentRef(file_id=raw.id, name=raw.original_name)
    if isinstance(raw, Mapping):
        try:
            return AttachmentRef(file_id=int(raw["file_id"]), name=raw.get("name") or "")
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(
                "Attachment must reference an uploaded file",
                field_errors={"attachments": ["Each attachment needs a file_id."]},
            ) from exc
    try:
        return AttachmentRef(file_id=int(raw))
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            "Attachment must reference an uploaded file",
            field_errors={"attachments": [f"Invalid attachment reference: {raw!r}"]},
        ) from exc


def resolve_attachments(
    principal: Principal, refs: Iterable
) -> list[tuple[str, StoredFile]]:
    """Turn attachment references into ``(name, StoredFile)`` pairs, in order.

    Only files uploaded by the caller (any file for admins) can be attached.
    """

    refs = [_coerce_ref(raw) for raw in refs]
    if not refs:
        return []

    files = StoredFile.objects.filter(pk__in={ref.file_id for ref in refs})
    if not principal.is_admin:
        files = files.filter(uploaded_by_id=principal.user_id)
    files_by_id = {stored.pk: stored for stored in files}

    missing = sorted({ref.file_id for ref in refs if ref.file_id not in files_by_id})
    if missing:
        raise ValidationError(
            f"Unknown attachment file(s): {', '.join(str(pk) for pk in missing)}",
            field_errors={"attachments": [f"File {pk} not found." for pk in missing]},
        )

    return [
        (ref.name or files_by_id[ref.file_id].original_name, files_by_id[ref.file_id])
        for ref in refs
    ]


def authorize_download(principal: Principal, file_id: int) -> StoredFile:
    try:
        stored = StoredFile.objects.get(pk=file_id)
    except StoredFile.DoesNotExist as exc:
        raise NotFound("File not found") from exc

    ensure_can_download_file(principal, stored)

    if not stored.file or not stored.file.storage.exists(stored.file.name):
        logger.warning("Stored file missing from storage", extra={"file_id": stored.id})
        raise NotFound("File not found on server")
    return stored
