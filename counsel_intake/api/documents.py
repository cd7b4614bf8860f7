# counsel_intake/api/documents.py
import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from counsel_intake.core.db import get_db
from counsel_intake.models.schemas import DocumentOut, UploadOut, UploadResultOut
from counsel_intake.services import document_service
from counsel_intake.services.document_service import UploadItem

logger = logging.getLogger("intake.api.documents")
router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("/upload-intake/{intake_id}", response_model=UploadOut)
def upload_intake_documents(
    intake_id: str,
    documents: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
):
    """
    Attach files to an intake session.

    Each file is validated and stored on its own; the response lists the
    outcome per file, so a partial batch still returns 200.
    """
    items = [
        UploadItem(filename=f.filename or "document", content_type=f.content_type or "", data=f.file.read())
        for f in documents
    ]
    results = document_service.upload_intake_documents(db, intake_id, items)

    stored = [DocumentOut.model_validate(r.document) for r in results if r.document is not None]
    failed = sum(1 for r in results if not r.ok)
    if not stored:
        message = "No documents could be uploaded."
    elif failed:
        message = f"{len(stored)} document(s) uploaded, {failed} failed."
    else:
        message = "Documents uploaded and linked to intake successfully."

    return UploadOut(
        success=bool(stored),
        message=message,
        documents=stored,
        results=[
            UploadResultOut(
                name=r.name,
                ok=r.ok,
                document=DocumentOut.model_validate(r.document) if r.document is not None else None,
                error=r.error,
            )
            for r in results
        ],
    )
