import sys
import logging
from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

import pydantic

from counsel_intake.core.config import settings
from counsel_intake.core.db import get_db
from counsel_intake.models.orm import IntakeLink, IntakeMessage, IntakeSession

logger = logging.getLogger("intake.api.health")
router = APIRouter()


@router.get("/ping")
def ping():
    logger.info("GET /health/ping")
    return {"ok": True}


@router.get("/store")
def store_health(db: Session = Depends(get_db)):
    sessions = db.scalar(select(func.count(IntakeSession.id))) or 0
    messages = db.scalar(select(func.count(IntakeMessage.id))) or 0
    pending_links = db.scalar(select(func.count(IntakeLink.id)).where(IntakeLink.status == "pending")) or 0
    logger.info("GET /health/store sessions=%d messages=%d", sessions, messages)
    return {
        "ok": True,
        "sessions": sessions,
        "messages": messages,
        "pendingLinks": pending_links,
        "storageBackend": settings.storage_backend,
        "python": sys.version.split()[0],
        "pydantic": getattr(pydantic, "__version__", "unknown"),
    }
