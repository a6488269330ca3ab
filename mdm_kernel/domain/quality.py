"""
Field-quality scoring and per-field value recommendation.

Responsibility:
    Given the records of one duplicate group, score every candidate value of
    every recommendation field and propose the best one.  Pure functions:
    callers load the records and pass them in.

Invariants enforced:
    - ``score`` is deterministic, in [0, 100], and 0 for empty input.
    - Values are scored after trimming surrounding whitespace.
    - Candidates are ordered by score, highest first; ties keep record order.
    - ``has_conflict`` is true iff the group holds two or more distinct
      non-empty values for the field.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from mdm_kernel.domain.fields import RECOMMENDATION_FIELDS

_ARABIC = re.compile(r"[\u0600-\u06FF]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE = re.compile(r"^\+?[\d\s\-()]{7,15}$")
_LATIN_NAME_REJECT = re.compile(r"[^a-zA-Z\s&.-]")

BASE_SCORE = 50
MAX_SCORE = 100


def score(value: Any, field: str) -> int:
    """Heuristic quality score for one value of one field."""
    if value is None:
        return 0
    text = str(value).strip()
    if not text:
        return 0

    points = BASE_SCORE
    if 3 < len(text) < 100:
        points += 20

    if field == "first_name_ar" and _ARABIC.search(text):
        points += 30
    elif field == "email_address" and _EMAIL.match(text):
        points += 30
    elif field in ("mobile_number", "landline") and _PHONE.match(text):
        points += 20
    elif field == "tax" and len(text) >= 10:
        points += 25
    elif field == "first_name" and not _LATIN_NAME_REJECT.search(text):
        points += 15

    return min(points, MAX_SCORE)


@dataclass(frozen=True)
class Candidate:
    record_id: str
    value: str
    quality: int
    source_system: str | None
    record_name: str | None


@dataclass(frozen=True)
class FieldRecommendation:
    field: str
    recommended: Candidate
    alternatives: tuple[Candidate, ...]
    has_conflict: bool


def recommend(records: Iterable[Mapping[str, Any]]) -> dict[str, FieldRecommendation]:
    """
    Recommend a value per field from group record snapshots.

    Each snapshot needs ``id``, ``source_system``, ``first_name`` and the
    recommendation fields.  Fields with no non-empty candidate are omitted.
    """
    snapshots = list(records)
    result: dict[str, FieldRecommendation] = {}

    for field in RECOMMENDATION_FIELDS:
        candidates = [
            Candidate(
                record_id=snap["id"],
                value=snap[field],
                quality=score(snap[field], field),
                source_system=snap.get("source_system"),
                record_name=snap.get("first_name"),
            )
            for snap in snapshots
            if snap.get(field) not in (None, "")
        ]
        if not candidates:
            continue

        candidates.sort(key=lambda c: c.quality, reverse=True)
        result[field] = FieldRecommendation(
            field=field,
            recommended=candidates[0],
            alternatives=tuple(candidates[1:]),
            has_conflict=len({c.value for c in candidates}) > 1,
        )

    return result
