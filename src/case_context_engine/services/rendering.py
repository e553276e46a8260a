"""
Render case-management records as plain text.

Used for three things:
- the text that gets embedded when a stored record is vectorized
- the synthetic document in the context fallback branch
- the similarity query built from a case in simulations and coaching

Records are schemaless dicts from the document store, so every field is
optional and lists may hold strings or objects.
"""

from __future__ import annotations

from typing import Any, Callable

from case_context_engine.retrieval.document import EntityType


def _text(value: Any, key: str = "description") -> str:
    if isinstance(value, dict):
        return str(value.get(key) or value.get("content") or value.get("name") or "")
    return "" if value is None else str(value)


def _join(values: Any, key: str = "description") -> str:
    if not values:
        return ""
    if not isinstance(values, (list, tuple)):
        return _text(values, key)
    return ", ".join(t for t in (_text(v, key) for v in values) if t)


def _lines(pairs: list[tuple[str, Any]]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in pairs if value not in (None, ""))


def first_note(record: dict[str, Any]) -> str:
    """Content of the record's first note, or ""."""
    notes = record.get("notes") or []
    if not isinstance(notes, list) or not notes:
        return ""
    return _text(notes[0], "content").strip()


# ---------------------------------------------------------------------------
# PER-TYPE RENDERERS
# ---------------------------------------------------------------------------


def render_child(child: dict[str, Any]) -> str:
    return _lines([
        ("Child", child.get("name") or "Child"),
        ("Age", child.get("age")),
        ("Needs", _join(child.get("needs"))),
        ("Concerns", _join(child.get("concerns"))),
    ])


def render_caregiver(caregiver: dict[str, Any]) -> str:
    return _lines([
        ("Caregiver", caregiver.get("name") or "Caregiver"),
        ("Role", caregiver.get("role")),
        ("Concerns", _join(caregiver.get("concerns"))),
        ("Support Needs", _join(caregiver.get("supportNeeds"))),
    ])


def render_case_query(case: dict[str, Any]) -> str:
    """Case profile plus family members, used as a similarity query."""
    family = case.get("family") or {}
    parts = [
        _lines([
            ("Case Type", case.get("type")),
            ("Status", case.get("status")),
            ("Goals", _join(case.get("goals"))),
            ("Challenges", _join(case.get("challenges"))),
            ("Key Interventions", _join(case.get("keyInterventions"))),
        ])
    ]
    parts.extend(render_child(child) for child in family.get("children") or [])
    parts.extend(render_caregiver(cg) for cg in family.get("caregivers") or [])
    return "\n\n".join(p for p in parts if p)


def render_case(case: dict[str, Any]) -> str:
    """Case profile, family and notes."""
    text = render_case_query(case)
    notes = _join(case.get("notes"), "content")
    if notes:
        text = f"{text}\nNotes: {notes}" if text else f"Notes: {notes}"
    return text


def render_provider(provider: dict[str, Any]) -> str:
    return _lines([
        ("Provider", provider.get("name") or provider.get("providerName")),
        ("Role", provider.get("role")),
        ("Specialties", _join(provider.get("specialties"))),
        ("Notes", _join(provider.get("notes"), "content")),
    ])


def render_review(review: dict[str, Any]) -> str:
    return _lines([
        ("Review", review.get("title") or review.get("type")),
        ("Rating", review.get("rating")),
        ("Strengths", _join(review.get("strengths"))),
        ("Areas for Improvement", _join(review.get("areasForImprovement"))),
        ("Comments", review.get("content") or review.get("comments")),
    ])


def render_coaching(session: dict[str, Any]) -> str:
    return _lines([
        ("Coaching Session", session.get("topic") or session.get("title")),
        ("Goals", _join(session.get("goals"))),
        ("Notes", _join(session.get("notes"), "content")),
        ("Outcomes", _join(session.get("outcomes"))),
    ])


_RENDERERS: dict[EntityType, Callable[[dict[str, Any]], str]] = {
    EntityType.CASE: render_case,
    EntityType.PROVIDER: render_provider,
    EntityType.CHILD: render_child,
    EntityType.CAREGIVER: render_caregiver,
    EntityType.REVIEW: render_review,
    EntityType.COACHING: render_coaching,
}


def render_record(entity_type: EntityType, record: dict[str, Any]) -> str:
    """Render a stored record of the given type as embeddable text."""
    return _RENDERERS[entity_type](record)
