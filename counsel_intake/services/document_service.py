# counsel_intake/services/document_service.py
import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from counsel_intake.core.config import settings
from counsel_intake.core.errors import IntakeError, NotFoundError, ValidationError
from counsel_intake.models.orm import IntakeDocument, IntakeSession
from counsel_intake.services import storage_service

logger = logging.getLogger("intake.documents")

# "id" as its own token: drivers_id.png, ID-card.jpg, not video.mp4
_ID_TOKEN = re.compile(r"(?:^|[^a-z0-9])id(?:[^a-z0-9]|$)")

ALLOWED_MIME_TYPES = {
    # Images
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    # Documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    # Text
    "text/plain",
    "text/csv",
    # Archives / unknown binary
    "application/zip",
    "application/x-rar-compressed",
    "application/octet-stream",
    # Audio
    "audio/webm",
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
    "audio/aac",
}


@dataclass
class UploadItem:
    filename: str
    content_type: str
    data: bytes


@dataclass
class UploadResult:
    name: str
    ok: bool
    document: Optional[IntakeDocument] = None
    error: Optional[str] = None


def detect_document_type(filename: str) -> str:
    """Best-effort label from the file name."""
    name = (filename or "").lower()
    if "passport" in name:
        return "Passport"
    if "license" in name or _ID_TOKEN.search(name):
        return "ID Document"
    if "bank" in name or "statement" in name:
        return "Bank Statement"
    if "contract" in name:
        return "Legal Contract"
    if "birth" in name:
        return "Birth Certificate"
    return "Legal Document"


def _check_file(item: UploadItem) -> None:
    content_type = (item.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"File type {item.content_type} is not allowed")
    if not item.data:
        raise ValidationError(f"File {item.filename} is empty")
    if len(item.data) > settings.max_upload_bytes:
        raise ValidationError(
            f"File {item.filename} is too large. Maximum size is "
            f"{settings.max_upload_bytes // (1024 * 1024)}MB"
        )


def upload_intake_documents(db: Session, session_id: str, files: Sequence[UploadItem]) -> List[UploadResult]:
    """
    Store each file and link it to the intake session.

    A failing file is reported in its own result and never stops the rest
    of the batch.
    """
    if not files:
        raise ValidationError("No files uploaded.")
    if len(files) > settings.max_upload_files:
        raise ValidationError(f"Too many files. Maximum is {settings.max_upload_files} files.")

    session = db.scalar(select(IntakeSession).where(IntakeSession.session_id == session_id))
    if not session:
        raise NotFoundError("Intake session not found.")

    results: List[UploadResult] = []
    for item in files:
        name = item.filename or "document"
        try:
            _check_file(item)
            key = f"intake/{session_id}/{uuid.uuid4().hex}_{storage_service.safe_filename(name)}"
            stored = storage_service.store(item.data, key, item.content_type)
        except IntakeError as e:
            logger.warning("Upload failed sid=%s file=%s: %s", session_id, name, e.message)
            results.append(UploadResult(name=name, ok=False, error=e.message))
            continue

        doc = IntakeDocument(
            session_pk=session.id,
            name=name,
            url=stored.url,
            storage_key=stored.identifier,
            content_type=item.content_type or "",
            size_bytes=len(item.data),
            type=detect_document_type(name),
        )
        db.add(doc)
        results.append(UploadResult(name=name, ok=True, document=doc))

    db.commit()
    for r in results:
        if r.document is not None:
            db.refresh(r.document)

    logger.info(
        "Intake upload sid=%s ok=%d failed=%d",
        session_id, sum(1 for r in results if r.ok), sum(1 for r in results if not r.ok),
    )
    return results
