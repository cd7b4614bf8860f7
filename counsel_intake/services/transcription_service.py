# counsel_intake/services/transcription_service.py
"""Voice answers to text via an OpenAI-compatible /audio/transcriptions endpoint."""
import io
import logging

import requests

from counsel_intake.core.config import settings
from counsel_intake.core.errors import UpstreamServiceError, ValidationError

logger = logging.getLogger("intake.transcription")

TRANSCRIBABLE_MIME_TYPES = {
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
    "audio/aac",
    "video/webm",
}

# Whisper limit
MAX_TRANSCRIPTION_SIZE_BYTES = 25 * 1024 * 1024


def is_transcribable(content_type: str) -> bool:
    # browsers send e.g. "audio/webm;codecs=opus"
    return (content_type or "").split(";")[0].strip().lower() in TRANSCRIBABLE_MIME_TYPES


def transcribe(audio: bytes, filename: str, content_type: str, language: str = "en") -> str:
    """Return the transcript text (may be empty when nothing was understood)."""
    if not audio:
        raise ValidationError("Audio file is empty")
    if not is_transcribable(content_type):
        raise ValidationError(f"File type {content_type} is not allowed")
    if len(audio) > MAX_TRANSCRIPTION_SIZE_BYTES:
        raise ValidationError(
            f"Audio too large for transcription. Max size is {MAX_TRANSCRIPTION_SIZE_BYTES // (1024 * 1024)}MB"
        )
    if not settings.transcription_api_key:
        raise UpstreamServiceError("Transcription service is not configured")

    files = {"file": (filename or "answer.webm", io.BytesIO(audio), content_type)}
    data = {
        "model": settings.transcription_model,
        "language": language,
        "response_format": "text",
    }
    try:
        resp = requests.post(
            settings.transcription_url,
            headers={"Authorization": f"Bearer {settings.transcription_api_key}"},
            files=files,
            data=data,
            timeout=(settings.extraction_connect_timeout, 120),
        )
    except requests.RequestException as e:
        logger.error("Transcription request failed: %r", e)
        raise UpstreamServiceError("Transcription service unavailable") from e

    if resp.status_code >= 400:
        logger.error("Transcription HTTP %d: %s", resp.status_code, resp.text[:300])
        raise UpstreamServiceError(f"Transcription failed with HTTP {resp.status_code}")

    text = (resp.text or "").strip()
    logger.info("Transcribed %d bytes -> %d chars", len(audio), len(text))
    return text
