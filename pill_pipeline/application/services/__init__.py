"""
Application Services

High-level services that coordinate domain operations.
"""

from .identification_service import (
    IdentificationService,
    create_identification_service,
    generate_session_id,
)
from .ranking import (
    calculate_search_confidence,
    score_match,
    imprint_similarity,
    rank_matches,
    rerank_matches,
)

__all__ = [
    "IdentificationService",
    "create_identification_service",
    "generate_session_id",
    "calculate_search_confidence",
    "score_match",
    "imprint_similarity",
    "rank_matches",
    "rerank_matches",
]
