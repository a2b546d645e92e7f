"""
File: regional_timeline/models.py
Internal data structures used during collection/analysis.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


JsonDict = Dict[str, Any]


@dataclass(frozen=True)
class Post:
    """A public status from one instance, tagged with the instance it came from.

    ``id`` is only unique within ``source_domain``.
    """

    id: str
    created_at: datetime
    content: str  # raw HTML
    url: str
    author_handle: str
    source_domain: str


Timeline = Tuple[Post, ...]


def _percent(count: int, total: int) -> int:
    # Half-up rounding
    return int(count * 100 / total + 0.5) if total else 0


@dataclass(frozen=True)
class SentimentTally:
    """Label counts over the items that received a classification."""

    positive: int = 0
    negative: int = 0
    neutral: int = 0

    @property
    def total_analyzed(self) -> int:
        return self.positive + self.negative + self.neutral

    @property
    def positive_percentage(self) -> int:
        return _percent(self.positive, self.total_analyzed)

    @property
    def negative_percentage(self) -> int:
        return _percent(self.negative, self.total_analyzed)

    @property
    def neutral_percentage(self) -> int:
        return _percent(self.neutral, self.total_analyzed)

    @classmethod
    def from_labels(cls, labels: list[Optional[str]]) -> "SentimentTally":
        """Count "positive" / "negative" / "neutral" labels; ``None`` entries are skipped."""
        counts = {"positive": 0, "negative": 0, "neutral": 0}
        for label in labels:
            if label in counts:
                counts[label] += 1
        return cls(**counts)


__all__ = ["Post", "Timeline", "SentimentTally", "JsonDict"]
