# counsel_intake/services/extraction_service.py
"""
Client for the LLM that turns a visitor's answer into structured intake data.

Speaks the OpenAI-compatible chat-completions protocol (DeepSeek by default)
and asks for a JSON object reply shaped:

    {"extractedData": {...}, "nextQuestion": "..."}

where nextQuestion == "COMPLETED" ends the intake. Any transport failure or
unusable reply raises UpstreamServiceError; the conversation driver turns
that into a clarification prompt.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from counsel_intake.core.config import settings
from counsel_intake.core.errors import UpstreamServiceError

logger = logging.getLogger("intake.extraction")

COMPLETION_SENTINEL = "COMPLETED"
DEFAULT_NEXT_QUESTION = "Thank you. Is there anything else you'd like to add?"

ROLE_MAP = {"user": "user", "assistant": "assistant", "system": "system"}

_RETRY = Retry(
    total=settings.extraction_retries,
    connect=settings.extraction_retries,
    read=settings.extraction_retries,
    backoff_factor=0.5,
    status_forcelist=(429, 500, 502, 503, 504),
    allowed_methods=("POST",),
    raise_on_status=False,
)

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        s = requests.Session()
        adapter = HTTPAdapter(max_retries=_RETRY, pool_maxsize=20)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        _session = s
    return _session


def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.extraction_api_key}",
        "Content-Type": "application/json",
    }


@dataclass
class ExtractionReply:
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    next_question: str = DEFAULT_NEXT_QUESTION
    confidence: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return self.next_question.strip() == COMPLETION_SENTINEL


# ---------- Prompt ----------
def _system_prompt(case_type: str, questions: Sequence[str], focus_question: Optional[str]) -> str:
    lines = [
        f"You are a legal intake assistant. Your goal is to collect comprehensive information "
        f"from the client for a {case_type} case.",
        "",
        "Based on the conversation history and the client's last response, extract all relevant "
        "information into the intake data tree, keeping nested objects and arrays as shown below.",
        "",
        "If the client gives a full name, split it into 'personalInfo.firstName' and "
        "'personalInfo.lastName'.",
        "",
        "For array fields (e.g. 'immigrationInfo.children', 'criminalHistory.arrests', "
        "'caseInfo.previousLegalIssues') return only entries that are NEW in the client's last "
        "response, as an array of objects. Do not repeat entries already captured.",
        "",
        "Only include fields the client actually provided. Do not invent values.",
        "",
        "After extracting, choose the next logical question from the predefined list. If all "
        "questions are answered and enough information is collected for this case type, "
        f"set nextQuestion to '{COMPLETION_SENTINEL}'.",
        "",
        "Respond ONLY with a JSON object with two top-level keys: 'extractedData' (an object with "
        "the extracted values) and 'nextQuestion' (the next question to ask, or "
        f"'{COMPLETION_SENTINEL}' when the intake is finished). You may add 'confidenceScore' "
        "(0-1) for how sure you are about the extraction.",
        "",
        'Example extractedData: {"personalInfo": {"firstName": "John", "lastName": "Doe"}, '
        '"contactInfo": {"email": "john.doe@example.com"}, '
        '"immigrationInfo": {"children": [{"name": "Jane Doe", "dateOfBirth": "2010-01-01"}]}}',
        "",
        f"Predefined questions for {case_type} intake: {json.dumps(list(questions))}. "
        "Prioritize these questions.",
    ]
    if focus_question:
        lines += ["", f"The next predefined question to ask is: {json.dumps(focus_question)}"]
    return "\n".join(lines)


def build_messages(
    case_type: str,
    history: Sequence[Tuple[str, str]],
    questions: Sequence[str],
    utterance: str,
    focus_question: Optional[str] = None,
) -> List[Dict[str, str]]:
    """
    Context package for one turn: instruction, prior (role, content) history,
    then the latest utterance.
    """
    messages = [{"role": "system", "content": _system_prompt(case_type, questions, focus_question)}]
    for role, content in history:
        messages.append({"role": ROLE_MAP.get(role, "user"), "content": content})
    messages.append({"role": "user", "content": utterance})
    return messages


# ---------- Reply parsing ----------
def _strip_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_reply(content: str) -> ExtractionReply:
    """Validate the model's text reply; raises UpstreamServiceError when unusable."""
    try:
        parsed = json.loads(_strip_fences(content or ""))
    except (TypeError, ValueError) as e:
        logger.error("Extraction returned non-JSON content: %s", (content or "")[:300])
        raise UpstreamServiceError("Extraction service returned an unreadable reply") from e

    if not isinstance(parsed, dict):
        logger.error("Extraction reply is not an object (type=%s)", type(parsed).__name__)
        raise UpstreamServiceError("Extraction service returned an unreadable reply")

    data = parsed.get("extractedData")
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("extractedData is not an object; ignoring it")
        data = {}

    next_question = parsed.get("nextQuestion")
    if not isinstance(next_question, str) or not next_question.strip():
        next_question = DEFAULT_NEXT_QUESTION

    confidence = parsed.get("confidenceScore")
    try:
        confidence = max(0.0, min(1.0, float(confidence))) if confidence is not None else None
    except (TypeError, ValueError):
        confidence = None

    return ExtractionReply(extracted_data=data, next_question=next_question.strip(), confidence=confidence)


# ---------- Public API ----------
def extract(messages: List[Dict[str, str]], session_id: str = "") -> ExtractionReply:
    """Blocking call with bounded timeouts and one retry."""
    if not settings.extraction_api_key:
        raise UpstreamServiceError("Extraction service is not configured")

    body = {
        "model": settings.extraction_model,
        "messages": messages,
        "temperature": 0.2,
        "response_format": {"type": "json_object"},
    }

    try:
        resp = _get_session().post(
            settings.extraction_url,
            headers=_headers(),
            json=body,
            timeout=(settings.extraction_connect_timeout, settings.extraction_read_timeout),
        )
    except requests.RequestException as e:
        logger.error("Extraction request failed (sid=%s): %r", session_id, e)
        raise UpstreamServiceError("Extraction service unavailable") from e

    if resp.status_code >= 400:
        logger.warning("Extraction HTTP %d (sid=%s): %s", resp.status_code, session_id, resp.text[:300])
        raise UpstreamServiceError(f"Extraction service returned HTTP {resp.status_code}")

    try:
        data = resp.json()
        content = data["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as e:
        logger.error("Extraction response has unexpected shape (sid=%s): %s", session_id, resp.text[:300])
        raise UpstreamServiceError("Extraction service returned an unreadable reply") from e

    reply = parse_reply(content)
    logger.info(
        "Extraction ok sid=%s complete=%s keys=%s",
        session_id, reply.is_complete, ",".join(sorted(reply.extracted_data.keys())) or "-",
    )
    return reply
