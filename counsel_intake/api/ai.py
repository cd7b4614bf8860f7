# counsel_intake/api/ai.py
"""
Conversational intake turns (typed and voice).
"""
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from counsel_intake.core.db import get_db
from counsel_intake.core.errors import ValidationError
from counsel_intake.models.schemas import TurnIn, TurnOut
from counsel_intake.services import conversation_service, transcription_service

logger = logging.getLogger("intake.api.ai")
router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/intake", response_model=TurnOut)
def ai_intake(payload: TurnIn, db: Session = Depends(get_db)):
    """One typed turn. `initial=true` asks the first question without a message."""
    if not payload.initial and not (payload.message or "").strip():
        raise ValidationError("Message is required")
    result = conversation_service.process_turn(db, payload.intake_id, payload.message, initial=payload.initial)
    return TurnOut(message=result.message, extracted_data=result.extracted_data, is_complete=result.is_complete)


@router.post("/voice-intake", response_model=TurnOut)
def voice_intake(payload: TurnIn, db: Session = Depends(get_db)):
    """One voice turn whose audio the browser already transcribed."""
    result = conversation_service.process_turn(db, payload.intake_id, payload.message, initial=payload.initial)
    return TurnOut(message=result.message, extracted_data=result.extracted_data, is_complete=result.is_complete)


@router.post("/voice-intake/audio", response_model=TurnOut)
def voice_intake_audio(
    intake_id: str = Form(..., alias="intakeId", min_length=1),
    audio: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """One voice turn from a recorded answer; transcribed server-side first."""
    data = audio.file.read()
    transcript = transcription_service.transcribe(data, audio.filename or "answer.webm", audio.content_type or "")
    logger.info("Voice turn sid=%s transcript_chars=%d", intake_id, len(transcript))
    result = conversation_service.process_turn(db, intake_id, transcript)
    return TurnOut(
        message=result.message,
        extracted_data=result.extracted_data,
        is_complete=result.is_complete,
        transcript=transcript,
    )
