"""Near-duplicate detection between incoming candidates and existing records.

Aggregator re-syncs return overlapping windows and there is no stable id
shared across sources, so a candidate counts as already present when it
matches an existing transaction on all three of:

- amount, within a one-cent tolerance,
- calendar date, exactly,
- description, with a normalized Levenshtein similarity of at least 0.70.

Public surface:
- ``clean_description``: the normalization applied to both sides.
- ``similarity``: ``1 - distance / max(len(a), len(b))``.
- ``is_duplicate`` / ``partition``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import NamedTuple

from rapidfuzz.distance import Levenshtein

from .models import DESCRIPTION_MAX_LEN, CanonicalTransaction

AMOUNT_TOLERANCE = Decimal("0.01")
SIMILARITY_THRESHOLD = 0.70
EMPTY_DESCRIPTION = "Transação sem descrição"

_WS_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^\w\s\-.,]")


def clean_description(text: str) -> str:
    """Normalize a description for display and comparison.

    Trims, collapses whitespace, drops characters other than word characters,
    whitespace and ``-.,``, caps the length and capitalizes only the first
    letter. Blank input becomes ``"Transação sem descrição"``.
    """

    s = _WS_RE.sub(" ", (text or "").strip())
    s = _DISALLOWED_RE.sub("", s).replace("_", "")
    s = s.strip()[:DESCRIPTION_MAX_LEN]
    if not s:
        return EMPTY_DESCRIPTION
    return s[0].upper() + s[1:].lower()


def similarity(a: str, b: str) -> float:
    """Return ``1 - levenshtein(a, b) / max(len(a), len(b))`` (1.0 for two empty strings)."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def is_duplicate(
    candidate: CanonicalTransaction,
    existing: CanonicalTransaction,
    *,
    threshold: float = SIMILARITY_THRESHOLD,
) -> bool:
    if abs(abs(candidate.amount) - existing.amount) > AMOUNT_TOLERANCE:
        return False
    if candidate.date != existing.date:
        return False
    return (
        similarity(
            clean_description(candidate.description), clean_description(existing.description)
        )
        >= threshold
    )


class DuplicatePartition(NamedTuple):
    """Stable split of a candidate batch; each list keeps input order."""

    duplicates: list[CanonicalTransaction]
    new: list[CanonicalTransaction]


def partition(
    candidates: Iterable[CanonicalTransaction],
    existing: Sequence[CanonicalTransaction],
    *,
    threshold: float = SIMILARITY_THRESHOLD,
) -> DuplicatePartition:
    """Split ``candidates`` into those already present in ``existing`` and new ones.

    ``existing`` is only read. Candidates are compared against ``existing``
    alone, not against each other.
    """

    # Bucket by date: the date must match exactly anyway.
    by_date: dict[object, list[CanonicalTransaction]] = {}
    for tx in existing:
        by_date.setdefault(tx.date, []).append(tx)

    dupes: list[CanonicalTransaction] = []
    fresh: list[CanonicalTransaction] = []
    for cand in candidates:
        same_day = by_date.get(cand.date, ())
        if any(is_duplicate(cand, ex, threshold=threshold) for ex in same_day):
            dupes.append(cand)
        else:
            fresh.append(cand)
    return DuplicatePartition(duplicates=dupes, new=fresh)


__all__ = [
    "AMOUNT_TOLERANCE",
    "SIMILARITY_THRESHOLD",
    "clean_description",
    "similarity",
    "is_duplicate",
    "DuplicatePartition",
    "partition",
]
