# counsel_intake/api/intake.py
"""
Intake endpoints.

Public (visitor) routes take the link / session id in the path; staff routes
require a Bearer token. Static paths are declared before `/{link_id}` so they
are not swallowed by it.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from counsel_intake.auth.permissions import AuthContext, get_auth_context, require_admin
from counsel_intake.core.db import get_db
from counsel_intake.models.schemas import (
    CaseCreated,
    CompleteOut,
    InitiateIn,
    InitiateOut,
    LinkCreate,
    LinkCreated,
    LinkOut,
    SessionOut,
    SessionSummary,
    UpdateDataOut,
)
from counsel_intake.services import intake_service

logger = logging.getLogger("intake.api.intake")
router = APIRouter(prefix="/api/intake", tags=["intake"])


def _link_out(link) -> LinkOut:
    out = LinkOut.model_validate(link)
    out.url = intake_service.public_link_url(link)
    return out


# ---------- Staff: links ----------
@router.post("/create-link", response_model=LinkCreated, status_code=201)
def create_link(
    payload: LinkCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Create a public intake link valid for the configured number of days."""
    link = intake_service.create_link(db, auth, payload.intake_type)
    return LinkCreated(
        message="Public intake link created successfully",
        link_id=link.link_id,
        url=intake_service.public_link_url(link),
        expires_at=link.expires_at,
    )


@router.get("/links")
def list_links(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    links = intake_service.list_links(db, auth)
    return {"success": True, "data": [_link_out(link).model_dump(by_alias=True, mode="json") for link in links]}


@router.delete("/links/{link_id}")
def delete_link(link_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    intake_service.delete_link(db, auth, link_id)
    return {"success": True, "message": "Intake link deleted successfully."}


@router.post("/links/{link_id}/abandon", response_model=LinkOut)
def abandon_link(link_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Withdraw a pending link; visitors opening it afterwards get 410."""
    return _link_out(intake_service.abandon_link(db, auth, link_id))


# ---------- Staff: sessions ----------
@router.get("", response_model=List[SessionSummary])
def list_intakes(
    search: Optional[str] = None,
    status: Optional[str] = None,
    case_type: Optional[str] = Query(default=None, alias="caseType"),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """
    Intakes of the caller's firm, newest first.

    Filters:
    - search: first/last name, email or case type
    - status, caseType ("all" disables the filter)
    """
    return intake_service.list_sessions(db, auth, search=search, status=status, case_type=case_type)


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_intake(session_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return intake_service.get_session(db, auth, session_id)


@router.post("/sessions/{session_id}/convert-to-case", response_model=CaseCreated, status_code=201)
def convert_to_case(session_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Open a case for the intake, completing it into a client first if needed."""
    case = intake_service.convert_to_case(db, auth, session_id)
    return CaseCreated(
        message="Intake converted to case successfully!",
        case_id=case.id,
        case_number=case.case_number,
        client_id=case.client_id,
    )


@router.delete("/sessions/{session_id}", status_code=204)
def delete_intake(session_id: str, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    intake_service.delete_session(db, auth, session_id)


# ---------- Public ----------
@router.post("/initiate", response_model=InitiateOut, status_code=201)
def initiate(payload: Optional[InitiateIn] = Body(default=None), db: Session = Depends(get_db)):
    session = intake_service.initiate_session(db, case_type=payload.case_type if payload else None)
    return InitiateOut(message="Intake initiated successfully", intake_id=session.session_id)


@router.post("/{intake_id}/complete", response_model=CompleteOut)
def complete(intake_id: str, db: Session = Depends(get_db)):
    """Visitor finalizes the intake; 409 when it was already completed."""
    client = intake_service.complete_session(db, intake_id)
    return CompleteOut(message="Intake finalized and client created successfully!", client_id=client.id)


@router.put("/{intake_id}/update-data", response_model=UpdateDataOut)
def update_data(intake_id: str, payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    session = intake_service.update_data(db, intake_id, payload)
    return UpdateDataOut(
        message="Intake data updated successfully!",
        completion_percentage=session.completion_percentage,
    )


@router.get("/{link_id}", response_model=SessionOut)
def open_link(link_id: str, db: Session = Depends(get_db)):
    """Resume (or start) the intake behind a public link; 410 once expired."""
    return intake_service.open_link(db, link_id)
