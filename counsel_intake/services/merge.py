# counsel_intake/services/merge.py
"""
Folding extracted fragments into a session's accumulated tree.

Rules (applied field by field over the typed schema):
  * non-empty incoming leaf overwrites, last write wins
  * incoming null / "" / [] keeps what is stored; if nothing is stored the
    key is inserted so the field counts as asked
  * nested objects recurse
  * lists concatenate, no dedup (a repeated mention becomes a second entry)

Neither input is mutated.
"""
import logging
from typing import Any, Iterator, Tuple

from counsel_intake.models.extracted import (
    ExtractedData,
    IntakeModel,
    dump_extracted,
    parse_extracted,
)

logger = logging.getLogger("intake.merge")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and not value)


def _merge_model(existing: IntakeModel, incoming: IntakeModel) -> IntakeModel:
    updates = {}
    for name in incoming.model_fields_set:
        new = getattr(incoming, name)
        if name not in existing.model_fields_set:
            updates[name] = new
            continue
        if _is_empty(new):
            continue
        old = getattr(existing, name)
        if isinstance(new, IntakeModel) and isinstance(old, IntakeModel):
            updates[name] = _merge_model(old, new)
        elif isinstance(new, list):
            updates[name] = list(old or []) + list(new)
        else:
            updates[name] = new
    if not updates:
        return existing
    return existing.model_copy(update=updates)


def merge_extracted(existing: ExtractedData, incoming: ExtractedData) -> ExtractedData:
    return _merge_model(existing, incoming)


def merge_trees(stored: dict | None, fragment: Any) -> Tuple[dict, int]:
    """
    Convenience for services working on stored JSON: parse both sides,
    merge, and hand back the new tree plus its completion percentage.
    """
    merged = merge_extracted(parse_extracted(stored or {}), parse_extracted(fragment))
    tree = dump_extracted(merged)
    return tree, completion_percentage(tree)


# ---------- Completion ----------
def _leaves(node: dict) -> Iterator[Any]:
    for value in node.values():
        if isinstance(value, dict):
            yield from _leaves(value)
        else:
            yield value


def completion_percentage(tree: dict | None) -> int:
    """
    Share of defined leaves that hold a value, 0-100, rounded half up.

    Scalars and lists are leaves; nested objects are walked, not counted.
    An empty tree is 0%.
    """
    if not tree:
        return 0
    total = 0
    filled = 0
    for leaf in _leaves(tree):
        total += 1
        if not _is_empty(leaf):
            filled += 1
    if total == 0:
        return 0
    # integer form of floor(100 * filled / total + 0.5)
    return (200 * filled + total) // (2 * total)
