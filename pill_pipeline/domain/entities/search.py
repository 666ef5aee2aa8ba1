"""
Search Entities

Query, reference records and ranked matches for the search and rerank stages.
"""

from dataclasses import dataclass, field, replace, asdict
from typing import Optional, Dict, Any, Tuple, Mapping, List


@dataclass(frozen=True)
class SearchQuery:
    """
    Sanitized projection of confirmed attributes.

    Unset fields are omitted from the query, never treated as "match nothing".
    Build instances through the identification service or
    cross_cutting.validation.build_search_query so values are canonical.
    """

    shape: Optional[str] = None
    color: Optional[str] = None
    front_imprint: Optional[str] = None
    back_imprint: Optional[str] = None
    size_mm: Optional[float] = None
    scoring: Optional[str] = None

    @property
    def supplied_fields(self) -> List[str]:
        return [name for name, value in self.to_dict().items() if value is not None]

    @property
    def is_empty(self) -> bool:
        return not self.supplied_fields

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SecondaryHints:
    """Optional auxiliary context used by rerank."""

    suspected_name: Optional[str] = None
    manufacturer: Optional[str] = None
    strength: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.suspected_name or self.manufacturer or self.strength)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PillRecord:
    """One reference-database pill. Unknown columns are kept in `extra`."""

    id: str
    name: Optional[str] = None
    generic_name: Optional[str] = None
    brand_name: Optional[str] = None
    ndc_number: Optional[str] = None
    shape: Optional[str] = None
    color: Optional[str] = None
    size_mm: Optional[float] = None
    thickness_mm: Optional[float] = None
    front_imprint: Optional[str] = None
    back_imprint: Optional[str] = None
    scoring: Optional[str] = None
    strength: Optional[str] = None
    drug_class: Optional[str] = None
    schedule: Optional[str] = None
    manufacturer: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {key: value for key, value in asdict(self).items() if key != "extra"}
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PillRecord":
        known = {name for name in cls.__dataclass_fields__ if name != "extra"}
        kwargs = {key: data[key] for key in known if key in data}
        if "id" not in kwargs:
            raise ValueError("Pill record requires an 'id'")
        kwargs["id"] = str(kwargs["id"])
        for numeric in ("size_mm", "thickness_mm"):
            if kwargs.get(numeric) is not None:
                kwargs[numeric] = float(kwargs[numeric])
        extra = {key: value for key, value in data.items() if key not in known}
        return cls(extra=extra, **kwargs)


@dataclass(frozen=True)
class RankedMatch:
    """
    Reference record with a derived match score.

    Attributes:
        record: The reference pill
        match_percentage: Score in [0, 1]; None when the store gave none
        imprint_similarity: Secondary tie-break signal in [0, 1]
        boost_applied: True when rerank raised the score
    """

    record: PillRecord
    match_percentage: Optional[float] = None
    imprint_similarity: float = 0.0
    boost_applied: bool = False

    @property
    def score(self) -> float:
        return self.match_percentage if self.match_percentage is not None else 0.0

    def with_score(self, match_percentage: float, boost_applied: bool) -> "RankedMatch":
        return replace(self, match_percentage=match_percentage, boost_applied=boost_applied)

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["match_percentage"] = self.match_percentage
        data["imprint_similarity"] = round(self.imprint_similarity, 4)
        data["boost_applied"] = self.boost_applied
        return data


@dataclass(frozen=True)
class SearchResult:
    """Ranked matches for one query (optionally reranked)."""

    matches: Tuple[RankedMatch, ...]
    confidence: float
    query: SearchQuery = field(default_factory=SearchQuery)
    search_id: Optional[str] = None
    session_id: Optional[str] = None
    reranked: bool = False

    @property
    def total_results(self) -> int:
        return len(self.matches)

    @property
    def matched_ids(self) -> List[str]:
        return [match.record.id for match in self.matches]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [match.to_dict() for match in self.matches],
            "confidence": round(self.confidence, 4),
            "search_id": self.search_id,
            "session_id": self.session_id,
            "total_results": self.total_results,
            "reranked": self.reranked,
            "query": self.query.to_dict(),
        }
