"""
Attribute Normalization

Maps free-text shape, color and scoring strings onto closed vocabularies.
All functions are pure and idempotent: normalizing a canonical value returns it.
"""

import re
from typing import Optional, Tuple, Any


# =============================================================================
# Vocabularies
# =============================================================================

BASE_SHAPES: Tuple[str, ...] = ("Round", "Oval", "Capsule/Oblong", "Rectangle", "Barrel")

SIDED_SHAPES: Tuple[str, ...] = (
    "Three-sided",
    "Four-sided",
    "Five-sided",
    "Six-sided",
    "Seven-sided",
    "Eight-sided",
)

SPECIAL_SHAPES: Tuple[str, ...] = (
    "Heart-shape",
    "Kidney-shape",
    "Egg-shape",
    "U-shape",
    "Figure eight-shape",
    "Character-shape",
    "Gear-shape",
)

SHAPE_OPTIONS: Tuple[str, ...] = BASE_SHAPES + SIDED_SHAPES + SPECIAL_SHAPES

COLOR_SINGLE_TONE: Tuple[str, ...] = ("White", "Blue", "Brown", "Green", "Pink", "Red", "Yellow")

COLOR_TWO_TONE: Tuple[str, ...] = (
    "Blue & White",
    "Green & White",
    "Pink & White",
    "Red & White",
    "Yellow & White",
)

COLOR_OPTIONS: Tuple[str, ...] = COLOR_SINGLE_TONE + COLOR_TWO_TONE

SCORING_OPTIONS: Tuple[str, ...] = ("no score", "1 score", "2 scores")

UNCLEAR = "unclear"

SHAPE_SYNONYMS = {
    "circle": "Round",
    "circular": "Round",
    "oblong": "Capsule/Oblong",
    "capsule": "Capsule/Oblong",
    "rectangular": "Rectangle",
    "drum": "Barrel",
    "triangle": "Three-sided",
    "triangular": "Three-sided",
    "square": "Four-sided",
    "pentagon": "Five-sided",
    "hexagon": "Six-sided",
    "heptagon": "Seven-sided",
    "octagon": "Eight-sided",
    "heart": "Heart-shape",
    "kidney": "Kidney-shape",
    "egg": "Egg-shape",
    "u": "U-shape",
    "figure eight": "Figure eight-shape",
    "figure-eight": "Figure eight-shape",
    "character": "Character-shape",
    "gear": "Gear-shape",
}

_SHAPE_BY_LOWER = {option.lower(): option for option in SHAPE_OPTIONS}
_COLOR_BY_LOWER = {option.lower(): option for option in COLOR_OPTIONS}
_TWO_TONE_PARTNERS = {
    option.lower().replace(" & white", ""): option for option in COLOR_TWO_TONE
}

_COLOR_SEPARATORS = re.compile(r"[/|,\-]|\band\b")
_WHITESPACE = re.compile(r"\s+")


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _WHITESPACE.sub(" ", value).strip().lower()


def is_unclear(value: Any) -> bool:
    """True for None, blank strings and the explicit "unclear" sentinel."""
    cleaned = _clean(value)
    return not cleaned or cleaned == UNCLEAR


def normalize_shape(value: Any) -> str:
    """
    Map a free-text shape onto SHAPE_OPTIONS.

    Returns:
        Canonical shape, or "" when the input is unknown or unclear
    """
    cleaned = _clean(value)
    if not cleaned:
        return ""
    return _SHAPE_BY_LOWER.get(cleaned) or SHAPE_SYNONYMS.get(cleaned, "")


def normalize_color(value: Any) -> str:
    """
    Map a free-text color onto COLOR_OPTIONS.

    Separators (/ | , - and the word "and") are read as "&". Two-tone
    colors are accepted only as White plus one allowed partner, in any order.
    Unknown colors normalize to "" so they never reach a search filter.
    """
    cleaned = _clean(value)
    if not cleaned:
        return ""

    if cleaned in _COLOR_BY_LOWER:
        return _COLOR_BY_LOWER[cleaned]

    unified = _COLOR_SEPARATORS.sub("&", cleaned)
    parts = [part.strip() for part in unified.split("&") if part.strip()]
    if len(parts) == 1:
        return _COLOR_BY_LOWER.get(parts[0], "")

    distinct = set(parts)
    if len(distinct) != 2 or "white" not in distinct:
        return ""

    (partner,) = distinct - {"white"}
    return _TWO_TONE_PARTNERS.get(partner, "")


def normalize_scoring(value: Any) -> str:
    """
    Map a free-text scoring description onto SCORING_OPTIONS.

    Anything containing "2" is "2 scores", anything else containing "1"
    is "1 score", everything else (including "unclear") is "no score".
    """
    cleaned = _clean(value)
    if cleaned in SCORING_OPTIONS:
        return cleaned
    if "2" in cleaned:
        return "2 scores"
    if "1" in cleaned:
        return "1 score"
    return "no score"


def normalize_text(value: Any) -> Optional[str]:
    """Trim free text; unclear or blank values become None."""
    if is_unclear(value):
        return None
    return value.strip()


def sanitize_filter_value(value: Any) -> Optional[str]:
    """Drop sentinel filter values ("any", "__group" headers) and blanks."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped or stripped.lower() == "any" or stripped.startswith("__"):
        return None
    return stripped
