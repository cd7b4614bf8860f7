# counsel_intake/services/conversation_service.py
"""
One conversational intake turn.

The visitor's message is committed first, then the extraction service is
asked for structured data plus the next question. A failed or garbled reply
never fails the turn: the visitor gets a clarification prompt and nothing is
merged. `next_question_index` moves only when a real question is asked.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from counsel_intake.core.errors import UpstreamServiceError
from counsel_intake.core.intake_questions import get_questions, question_texts
from counsel_intake.models.orm import IntakeMessage, IntakeSession
from counsel_intake.services import extraction_service, intake_service
from counsel_intake.services.extraction_service import DEFAULT_NEXT_QUESTION
from counsel_intake.services.merge import merge_trees

logger = logging.getLogger("intake.conversation")

FALLBACK_PROMPT = "I apologize, I had trouble processing that. Could you please rephrase?"
NOT_UNDERSTOOD = "Could not understand your response. Please try again."
GREETING = "Hello, how can I assist you with your legal intake today?"


@dataclass
class TurnResult:
    message: str
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    is_complete: bool = False


def _append(session: IntakeSession, role: str, content: str, kind: str = "text", meta: Optional[dict] = None) -> IntakeMessage:
    msg = IntakeMessage(role=role, content=content, kind=kind, meta=meta)
    session.messages.append(msg)
    return msg


def _first_turn(db: Session, session: IntakeSession) -> TurnResult:
    if session.messages:
        # already greeted; replay instead of asking twice
        last = next((m for m in reversed(session.messages) if m.role == "assistant"), None)
        if last is not None:
            return TurnResult(message=last.content, extracted_data=session.extracted_data or {})

    questions = get_questions(session.case_type)
    first = questions[0].question if questions else GREETING
    _append(session, "assistant", first, kind="question")
    session.next_question_index = 1
    db.commit()
    logger.info("First question sent sid=%s type=%s", session.session_id, session.case_type)
    return TurnResult(message=first, extracted_data=session.extracted_data or {})


def process_turn(db: Session, session_id: str, message: Optional[str], *, initial: bool = False) -> TurnResult:
    session = intake_service.get_session_by_id(db, session_id)
    intake_service.ensure_accepting_input(db, session)

    if initial:
        return _first_turn(db, session)

    utterance = (message or "").strip()
    if not utterance:
        return TurnResult(message=NOT_UNDERSTOOD, extracted_data=session.extracted_data or {})

    history = [(m.role, m.content) for m in session.messages]
    _append(session, "user", utterance)
    if session.status == "started":
        session.status = "in-progress"
    db.commit()

    questions = get_questions(session.case_type)
    cursor = session.next_question_index or 0
    focus = questions[cursor].question if cursor < len(questions) else None

    messages = extraction_service.build_messages(
        session.case_type,
        history,
        question_texts(session.case_type),
        utterance,
        focus_question=focus,
    )
    try:
        reply = extraction_service.extract(messages, session_id=session.session_id)
    except UpstreamServiceError as e:
        logger.warning("Extraction failed sid=%s: %s; asking visitor to rephrase", session_id, e.message)
        reply = None

    if reply is None:
        _append(session, "assistant", FALLBACK_PROMPT, kind="clarification", meta={"extractedData": {}})
        db.commit()
        return TurnResult(message=FALLBACK_PROMPT, extracted_data=session.extracted_data or {})

    tree, pct = merge_trees(session.extracted_data, reply.extracted_data)
    session.extracted_data = tree
    session.completion_percentage = pct

    meta: Dict[str, Any] = {"extractedData": reply.extracted_data}
    if reply.confidence is not None:
        meta["confidenceScore"] = reply.confidence

    is_complete = reply.is_complete
    text = reply.next_question
    if is_complete and not intake_service.has_client_data(tree):
        # nothing to build a client from yet; keep asking
        logger.warning("Completion signalled with no data sid=%s; asking the next question", session_id)
        is_complete = False
        text = focus or DEFAULT_NEXT_QUESTION

    if is_complete:
        _append(session, "assistant", text, kind="summary", meta=meta)
    else:
        _append(session, "assistant", text, kind="question", meta=meta)
        session.next_question_index = cursor + 1
    db.commit()

    logger.info(
        "Turn sid=%s completion=%d%% complete=%s cursor=%d",
        session_id, session.completion_percentage, is_complete, session.next_question_index,
    )

    if is_complete:
        intake_service.complete_session(db, session_id)
        db.refresh(session)

    return TurnResult(
        message=text,
        extracted_data=session.extracted_data or {},
        is_complete=is_complete,
    )
