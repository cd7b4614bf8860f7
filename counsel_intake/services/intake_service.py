# counsel_intake/services/intake_service.py
"""
Intake link and session lifecycle.

Link status only moves forward:

    pending -> completed | expired | abandoned

Session status: started -> in-progress -> completed. Completion converts the
accumulated data into a Client in the same transaction; the conversion
sub-record (is_converted / converted_at / client_id) marks that it happened.
"""
import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from counsel_intake.core.config import settings
from counsel_intake.core.db import utcnow
from counsel_intake.core.errors import (
    ConflictError,
    LinkExpiredError,
    NotFoundError,
    ValidationError,
)
from counsel_intake.core.intake_questions import normalize_case_type
from counsel_intake.models.extracted import dump_extracted, parse_extracted
from counsel_intake.models.orm import CASE_PRIORITIES, CASE_TYPES, Case, Client, IntakeLink, IntakeSession
from counsel_intake.services import notification_service
from counsel_intake.services.merge import completion_percentage, merge_trees

logger = logging.getLogger("intake.lifecycle")

FINISHED_SESSION_STATUSES = ("completed", "converted")
_LINK_TRANSITIONS = {
    "pending": {"completed", "expired", "abandoned"},
}

# extracted-data key -> Client column
CLIENT_CATEGORIES = {
    "personalInfo": "personal_info",
    "contactInfo": "contact_info",
    "caseInfo": "case_info",
    "immigrationInfo": "immigration_info",
    "criminalHistory": "criminal_history",
    "financialInfo": "financial_info",
    "medicalInfo": "medical_info",
    "communicationPreferences": "communication_preferences",
    "consents": "consents",
    "documents": "document_mentions",
}

CASE_PRIORITY_DEFAULT = "medium"


# ---------- Links ----------
def _transition_link(link: IntakeLink, new_status: str) -> None:
    if new_status not in _LINK_TRANSITIONS.get(link.status, set()):
        raise ConflictError(f"Intake link is already {link.status}.")
    logger.info("Link %s: %s -> %s", link.link_id, link.status, new_status)
    link.status = new_status


def public_link_url(link: IntakeLink) -> str:
    return f"{settings.frontend_url.rstrip('/')}/intake/{link.link_id}"


def _is_past(deadline: datetime, now: Optional[datetime] = None) -> bool:
    return deadline <= (now or utcnow())


def create_link(db: Session, user, case_type: str) -> IntakeLink:
    if not case_type or not str(case_type).strip():
        raise ValidationError("Intake type is required.")
    now = utcnow()
    link = IntakeLink(
        link_id=str(uuid.uuid4()),
        case_type=normalize_case_type(case_type),
        created_by_id=user.user_id,
        organization_id=user.organization_id,
        created_at=now,
        expires_at=now + timedelta(days=settings.link_ttl_days),
        status="pending",
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    logger.info("Link created id=%s type=%s by user_id=%s", link.link_id, link.case_type, user.user_id)
    return link


def list_links(db: Session, user) -> List[IntakeLink]:
    q = (
        select(IntakeLink)
        .where(IntakeLink.created_by_id == user.user_id)
        .order_by(IntakeLink.created_at.desc(), IntakeLink.id.desc())
    )
    return list(db.scalars(q))


def _get_own_link(db: Session, user, link_id: str) -> IntakeLink:
    link = db.scalar(
        select(IntakeLink).where(IntakeLink.link_id == link_id, IntakeLink.created_by_id == user.user_id)
    )
    if not link:
        raise NotFoundError("Intake link not found or you do not have permission to modify it.")
    return link


def delete_link(db: Session, user, link_id: str) -> None:
    link = _get_own_link(db, user, link_id)
    db.delete(link)
    db.commit()
    logger.info("Link deleted id=%s by user_id=%s", link_id, user.user_id)


def abandon_link(db: Session, user, link_id: str) -> IntakeLink:
    link = _get_own_link(db, user, link_id)
    _transition_link(link, "abandoned")
    db.commit()
    db.refresh(link)
    return link


def expire_stale_links(db: Session, now: Optional[datetime] = None) -> int:
    """Flip every overdue pending link to expired; returns how many changed."""
    now = now or utcnow()
    result = db.execute(
        update(IntakeLink)
        .where(IntakeLink.status == "pending", IntakeLink.expires_at <= now)
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = result.rowcount or 0
    if count:
        logger.info("Expired %d stale intake link(s)", count)
    return count


# ---------- Sessions ----------
def get_session_by_id(db: Session, session_id: str) -> IntakeSession:
    session = db.scalar(select(IntakeSession).where(IntakeSession.session_id == session_id))
    if not session:
        raise NotFoundError("Intake session not found.")
    return session


def _link_for(db: Session, session: IntakeSession) -> Optional[IntakeLink]:
    return db.scalar(select(IntakeLink).where(IntakeLink.link_id == session.session_id))


def _reject_closed_link(db: Session, link: Optional[IntakeLink]) -> None:
    if link is None:
        return
    if link.status in ("expired", "abandoned"):
        raise LinkExpiredError("Intake link has expired." if link.status == "expired" else "Intake link is no longer active.")
    if link.status == "pending" and _is_past(link.expires_at):
        _transition_link(link, "expired")
        db.commit()
        raise LinkExpiredError()


def ensure_accepting_input(db: Session, session: IntakeSession) -> None:
    """Raise unless the session can still take conversation turns or data."""
    if session.status in FINISHED_SESSION_STATUSES:
        raise ConflictError("Intake already completed.")
    _reject_closed_link(db, _link_for(db, session))


def initiate_session(db: Session, case_type: Optional[str] = None, user=None) -> IntakeSession:
    session = IntakeSession(
        session_id=str(uuid.uuid4()),
        case_type=normalize_case_type(case_type),
        created_by_id=getattr(user, "user_id", None),
        organization_id=getattr(user, "organization_id", None),
        status="started",
        extracted_data={},
    )
    if case_type:
        session.extracted_data = {"caseInfo": {"caseType": session.case_type}}
        session.completion_percentage = completion_percentage(session.extracted_data)
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Session initiated sid=%s type=%s", session.session_id, session.case_type)
    return session


def open_link(db: Session, link_id: str) -> IntakeSession:
    """
    Visitor opens a public link.

    completed link: the stored session, untouched.
    expired/abandoned (or past its deadline): LinkExpiredError, no session
    created or changed.
    pending: the session bound to the link, created on first access.
    """
    link = db.scalar(select(IntakeLink).where(IntakeLink.link_id == link_id))
    if not link:
        raise NotFoundError("Intake link not found.")

    if link.status == "completed":
        session = db.scalar(select(IntakeSession).where(IntakeSession.session_id == link_id))
        if not session:
            raise NotFoundError("Completed intake session not found.")
        return session

    _reject_closed_link(db, link)

    session = db.scalar(select(IntakeSession).where(IntakeSession.session_id == link_id))
    if session is None:
        session = IntakeSession(
            session_id=link.link_id,
            case_type=link.case_type,
            created_by_id=link.created_by_id,
            organization_id=link.organization_id,
            status="started",
            extracted_data={},
        )
        db.add(session)
        logger.info("Session created from link sid=%s type=%s", link.link_id, link.case_type)
    elif session.case_type != link.case_type:
        session.case_type = link.case_type

    current = (session.extracted_data or {}).get("caseInfo") or {}
    if current.get("caseType") != link.case_type:
        tree, pct = merge_trees(session.extracted_data, {"caseInfo": {"caseType": link.case_type}})
        session.extracted_data = tree
        session.completion_percentage = pct

    db.commit()
    db.refresh(session)
    return session


def _decode_embedded_lists(raw: dict) -> dict:
    # form widgets sometimes post a list field as a JSON string
    medical = raw.get("medicalInfo")
    if isinstance(medical, dict) and isinstance(medical.get("disabilities"), str):
        try:
            medical = {**medical, "disabilities": json.loads(medical["disabilities"])}
            raw = {**raw, "medicalInfo": medical}
        except ValueError:
            logger.warning("medicalInfo.disabilities is not valid JSON; dropping it")
    return raw


def update_data(db: Session, session_id: str, raw) -> IntakeSession:
    """Bulk overwrite from the manual form path."""
    if not isinstance(raw, dict):
        raise ValidationError("Intake data must be an object.")
    session = get_session_by_id(db, session_id)
    ensure_accepting_input(db, session)

    tree = dump_extracted(parse_extracted(_decode_embedded_lists(raw)))
    session.extracted_data = tree
    session.completion_percentage = completion_percentage(tree)
    if session.status == "started":
        session.status = "in-progress"
    db.commit()
    db.refresh(session)
    logger.info("Session data replaced sid=%s completion=%d", session_id, session.completion_percentage)
    return session


def _client_from_session(session: IntakeSession) -> Client:
    tree = session.extracted_data or {}
    columns = {col: tree.get(key) for key, col in CLIENT_CATEGORIES.items()}
    for col in ("personal_info", "contact_info", "case_info"):
        columns[col] = columns[col] or {}
    documents = [
        {
            "name": d.name,
            "url": d.url,
            "type": d.type,
            "category": d.category,
            "uploadDate": d.uploaded_at.isoformat() if d.uploaded_at else None,
        }
        for d in session.documents
    ]
    return Client(
        organization_id=session.organization_id,
        source_session_id=session.session_id,
        documents=documents,
        **columns,
    )


def has_client_data(tree: Optional[dict]) -> bool:
    """Whether a tree holds anything a Client record can be built from."""
    return bool(tree)


def _display_name(tree: dict) -> str:
    info = tree.get("personalInfo") or {}
    name = " ".join(p for p in (info.get("firstName"), info.get("lastName")) if p)
    return name or info.get("fullName") or "Unknown client"


def complete_session(db: Session, session_id: str) -> Client:
    """
    Finalize an intake and convert it into a Client.

    The status flip is one conditional UPDATE, so of two concurrent calls
    exactly one wins; the loser gets ConflictError and no client is created.
    """
    session = get_session_by_id(db, session_id)
    ensure_accepting_input(db, session)
    if not has_client_data(session.extracted_data):
        raise ValidationError("No extracted data available to create a client.")

    now = utcnow()
    result = db.execute(
        update(IntakeSession)
        .where(
            IntakeSession.id == session.id,
            IntakeSession.status.notin_(FINISHED_SESSION_STATUSES),
        )
        .values(status="completed", completed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Intake already completed.")
    db.refresh(session)

    try:
        client = _client_from_session(session)
        db.add(client)
        db.flush()

        session.is_converted = True
        session.converted_at = now
        session.client_id = client.id

        link = _link_for(db, session)
        notify_user_id = session.created_by_id
        if link is not None:
            _transition_link(link, "completed")
            link.client_id = client.id
            notify_user_id = notify_user_id or link.created_by_id

        if notify_user_id:
            notification_service.create_notification(
                db,
                notify_user_id,
                f"New intake completed: {_display_name(session.extracted_data)} ({session.case_type})",
                type="new_case",
                link=f"/clients/{client.id}",
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(client)
    logger.info("Session completed sid=%s client_id=%s", session_id, client.id)
    return client


def _case_from_session(session: IntakeSession, user) -> Case:
    info = (session.extracted_data or {}).get("caseInfo") or {}
    case_type = str(info.get("caseType") or session.case_type or "other").strip().lower()
    priority = str(info.get("priority") or CASE_PRIORITY_DEFAULT).strip().lower()
    return Case(
        # numbered from the row id once flushed
        case_number=f"PENDING-{uuid.uuid4().hex[:16]}",
        organization_id=session.organization_id,
        client_id=session.client_id,
        source_session_id=session.session_id,
        assigned_lawyer_id=user.user_id,
        title=(info.get("description") or "New Case from Intake")[:255],
        description=info.get("detailedDescription") or info.get("description") or "No detailed description provided.",
        case_type=case_type if case_type in CASE_TYPES else "other",
        sub_case_type=info.get("subCaseType"),
        status="open",
        priority=priority if priority in CASE_PRIORITIES else CASE_PRIORITY_DEFAULT,
    )


def convert_to_case(db: Session, user, session_id: str) -> Case:
    """
    Staff opens a case from an intake of their firm.

    An intake that has not produced a client yet is completed first (same
    rules as the visitor's complete). The session then moves to `converted`
    and records the case; a second conversion is a conflict.
    """
    session = get_session(db, user, session_id)
    if session.case_id is not None or session.status == "converted":
        raise ConflictError("Intake already converted to a case.")
    if not has_client_data(session.extracted_data):
        raise ValidationError("No extracted data available to create a case.")

    if session.client_id is None:
        complete_session(db, session_id)
        db.refresh(session)

    result = db.execute(
        update(IntakeSession)
        .where(IntakeSession.id == session.id, IntakeSession.status != "converted")
        .values(status="converted", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Intake already converted to a case.")
    db.refresh(session)

    try:
        case = _case_from_session(session, user)
        db.add(case)
        db.flush()
        case.case_number = f"CASE-{utcnow():%Y}-{case.id:04d}"
        session.case_id = case.id
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(case)
    logger.info("Session converted to case sid=%s case=%s by user_id=%s", session_id, case.case_number, user.user_id)
    return case


# ---------- Staff views ----------
def list_sessions(
    db: Session,
    user,
    search: Optional[str] = None,
    status: Optional[str] = None,
    case_type: Optional[str] = None,
) -> List[IntakeSession]:
    q = select(IntakeSession).where(IntakeSession.organization_id == user.organization_id)

    if search:
        pattern = f"%{search.strip()}%"
        data = IntakeSession.extracted_data
        q = q.where(
            or_(
                data[("personalInfo", "firstName")].as_string().ilike(pattern),
                data[("personalInfo", "lastName")].as_string().ilike(pattern),
                data[("contactInfo", "email")].as_string().ilike(pattern),
                IntakeSession.case_type.ilike(pattern),
            )
        )
    if status and status != "all":
        q = q.where(IntakeSession.status == status)
    if case_type and case_type != "all":
        q = q.where(IntakeSession.case_type == normalize_case_type(case_type))

    return list(db.scalars(q.order_by(IntakeSession.created_at.desc(), IntakeSession.id.desc())))


def get_session(db: Session, user, session_id: str) -> IntakeSession:
    session = db.scalar(
        select(IntakeSession).where(
            IntakeSession.session_id == session_id,
            IntakeSession.organization_id == user.organization_id,
        )
    )
    if not session:
        raise NotFoundError("Intake not found")
    return session


def delete_session(db: Session, user, session_id: str) -> None:
    session = get_session(db, user, session_id)
    db.delete(session)
    db.commit()
    logger.info("Session deleted sid=%s by user_id=%s", session_id, user.user_id)
