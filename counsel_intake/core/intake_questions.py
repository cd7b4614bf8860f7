# counsel_intake/core/intake_questions.py
"""
Canonical intake questions per case type.

Loaded once from data/intake_questions.json; the set is fixed at deploy time.
Each question names the dot-notation field (camelCase) it is meant to fill.
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from counsel_intake.core.config import DATA_DIR

logger = logging.getLogger("intake.questions")

QUESTIONS_FILE = DATA_DIR / "intake_questions.json"

CASE_TYPES: Tuple[str, ...] = ("Immigration", "Criminal", "Family", "Civil", "Business", "Other")
DEFAULT_CASE_TYPE = "Other"


@dataclass(frozen=True)
class CanonicalQuestion:
    question: str
    field: str
    case_type: str


def _load() -> Dict[str, Tuple[CanonicalQuestion, ...]]:
    with open(QUESTIONS_FILE, "r", encoding="utf-8") as f:
        raw = json.load(f)
    out: Dict[str, Tuple[CanonicalQuestion, ...]] = {}
    for case_type in CASE_TYPES:
        items = raw.get(case_type) or []
        out[case_type] = tuple(
            CanonicalQuestion(question=item["question"], field=item["field"], case_type=case_type)
            for item in items
        )
    logger.info(
        "Loaded intake questions: %s",
        ", ".join(f"{k}={len(v)}" for k, v in out.items()),
    )
    return out


_REGISTRY = _load()
_BY_LOWER = {c.lower(): c for c in CASE_TYPES}


def normalize_case_type(tag: str | None) -> str:
    """Case-insensitive match onto a known case type; anything else is Other."""
    if not tag:
        return DEFAULT_CASE_TYPE
    return _BY_LOWER.get(str(tag).strip().lower(), DEFAULT_CASE_TYPE)


def get_questions(case_type: str | None) -> Tuple[CanonicalQuestion, ...]:
    return _REGISTRY.get(normalize_case_type(case_type)) or _REGISTRY[DEFAULT_CASE_TYPE]


def question_texts(case_type: str | None) -> List[str]:
    return [q.question for q in get_questions(case_type)]
