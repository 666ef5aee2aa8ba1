"""
Search Ranking

Confidence heuristic, per-record match scores and rerank boosts.
All functions are pure.
"""

from difflib import SequenceMatcher
from typing import Optional, List, Iterable
import re

from ...domain.entities.search import (
    SearchQuery,
    SearchResult,
    SecondaryHints,
    PillRecord,
    RankedMatch,
)


# =============================================================================
# Weights
# =============================================================================

BASE_CONFIDENCE = 0.3

# Scoring is an exact filter only and carries no weight.
ATTRIBUTE_WEIGHTS = {
    "shape": 0.2,
    "color": 0.2,
    "front_imprint": 0.15,
    "back_imprint": 0.10,
    "size_mm": 0.05,
}

LARGE_RESULT_SET = 10
MEDIUM_RESULT_SET = 3

NAME_BOOST = 0.20
MANUFACTURER_BOOST = 0.15
STRENGTH_BOOST = 0.10

# Rerank starting score for records the store did not score
UNSCORED_BASE = 0.5

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _contains(needle: Optional[str], haystack: Optional[str]) -> bool:
    return bool(needle) and needle.lower() in (haystack or "").lower()


# =============================================================================
# Search
# =============================================================================

def calculate_search_confidence(query: SearchQuery, result_count: int) -> float:
    """
    Heuristic confidence that a search found the right pill.

    Starts at 0.3, adds a weight per supplied attribute, then dampens large
    result sets (more than 10: ×0.8, more than 3: ×0.9) and boosts small
    ones (1 to 3: ×1.1). An empty result set has no confidence.

    The medium band starts above 3 rather than above 5 so that a four-hit
    search on shape, color and front imprint scores 0.85 × 0.9 = 0.765;
    4 and 5 hits are therefore dampened too, leaving no unscaled band.

    Returns:
        Confidence in [0, 1]
    """
    if result_count <= 0:
        return 0.0

    confidence = BASE_CONFIDENCE + sum(
        weight for name, weight in ATTRIBUTE_WEIGHTS.items()
        if getattr(query, name) is not None
    )

    if result_count > LARGE_RESULT_SET:
        confidence *= 0.8
    elif result_count > MEDIUM_RESULT_SET:
        confidence *= 0.9
    else:
        confidence *= 1.1

    return round(_clamp(confidence), 4)


def score_match(
    record: PillRecord,
    query: SearchQuery,
    size_tolerance_mm: float = 2.0
) -> float:
    """
    Match percentage of one record: the confidence weights restricted to
    the query attributes this record actually matches.
    """
    matched = {
        "shape": _contains(query.shape, record.shape),
        "color": _contains(query.color, record.color),
        "front_imprint": _contains(query.front_imprint, record.front_imprint),
        "back_imprint": _contains(query.back_imprint, record.back_imprint),
        "size_mm": (
            query.size_mm is not None
            and record.size_mm is not None
            and abs(record.size_mm - query.size_mm) <= size_tolerance_mm
        ),
    }
    score = BASE_CONFIDENCE + sum(
        weight for name, weight in ATTRIBUTE_WEIGHTS.items() if matched[name]
    )
    return round(_clamp(score), 4)


def _normalize_imprint(text: Optional[str]) -> str:
    return _NON_ALNUM.sub("", (text or "").upper())


def imprint_similarity(query: SearchQuery, record: PillRecord) -> float:
    """Best SequenceMatcher ratio between query and record imprints (0 without a query imprint)."""
    best = 0.0
    for wanted in (query.front_imprint, query.back_imprint):
        wanted_norm = _normalize_imprint(wanted)
        if not wanted_norm:
            continue
        for candidate in (record.front_imprint, record.back_imprint):
            candidate_norm = _normalize_imprint(candidate)
            if candidate_norm:
                best = max(best, SequenceMatcher(None, wanted_norm, candidate_norm).ratio())
    return round(best, 4)


def _sort_key(match: RankedMatch):
    return (-match.score, -match.imprint_similarity)


def rank_matches(
    records: Iterable[PillRecord],
    query: SearchQuery,
    size_tolerance_mm: float = 2.0
) -> List[RankedMatch]:
    """
    Score records and order them by match percentage, then imprint similarity.

    The sort is stable, so ties keep the store's order.
    """
    matches = [
        RankedMatch(
            record=record,
            match_percentage=score_match(record, query, size_tolerance_mm),
            imprint_similarity=imprint_similarity(query, record),
        )
        for record in records
    ]
    matches.sort(key=_sort_key)
    return matches


# =============================================================================
# Rerank
# =============================================================================

def hint_boost(record: PillRecord, hints: SecondaryHints) -> float:
    """Sum of the boosts a record earns from the secondary hints."""
    boost = 0.0
    if hints.suspected_name and any(
        _contains(hints.suspected_name, name)
        for name in (record.brand_name, record.generic_name, record.name)
    ):
        boost += NAME_BOOST
    if _contains(hints.manufacturer, record.manufacturer):
        boost += MANUFACTURER_BOOST
    if _contains(hints.strength, record.strength):
        boost += STRENGTH_BOOST
    return boost


def rerank_matches(result: SearchResult, hints: Optional[SecondaryHints] = None) -> SearchResult:
    """
    Boost and reorder an existing result set.

    Never adds or removes candidates. Unscored records start from 0.5;
    boosted scores are capped at 1.0. The result confidence is the top
    boosted score.
    """
    hints = hints or SecondaryHints()

    reranked = []
    for match in result.matches:
        boost = hint_boost(match.record, hints)
        base = match.match_percentage if match.match_percentage is not None else UNSCORED_BASE
        reranked.append(match.with_score(round(min(base + boost, 1.0), 4), boost_applied=boost > 0))

    reranked.sort(key=_sort_key)
    confidence = max((match.score for match in reranked), default=0.0)

    return SearchResult(
        matches=tuple(reranked),
        confidence=confidence,
        query=result.query,
        search_id=result.search_id,
        session_id=result.session_id,
        reranked=True,
    )
