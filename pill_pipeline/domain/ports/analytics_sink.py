"""
Analytics Sink Port

Abstract interface for persisting confirmed searches.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any


@dataclass(frozen=True)
class SearchAnalyticsRecord:
    """What the pipeline hands off after a confirmed search."""

    session_id: str
    matched_pill_ids: List[str]
    confidence_score: float
    detected: Dict[str, Any] = field(default_factory=dict)
    user_confirmed: Dict[str, Any] = field(default_factory=dict)
    user_agent: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten into detected_* / user_confirmed_* columns."""
        row: Dict[str, Any] = {
            "matched_pill_ids": list(self.matched_pill_ids),
            "confidence_score": self.confidence_score,
            "session_id": self.session_id,
        }
        for key, value in self.detected.items():
            if value is not None:
                row[f"detected_{key}"] = value
        for key, value in self.user_confirmed.items():
            if value is not None:
                row[f"user_confirmed_{key}"] = value
        if self.user_agent:
            row["user_agent"] = self.user_agent
        return row

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AnalyticsSinkPort(ABC):
    """Port (interface) for analytics persistence."""

    @abstractmethod
    async def save_search(self, record: SearchAnalyticsRecord) -> Optional[str]:
        """
        Persist one search.

        Returns:
            Identifier of the stored row, if the sink assigns one

        Raises:
            AnalyticsError: If persistence fails
        """
        pass
