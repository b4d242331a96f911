"""Derived user taste profile"""
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional


def _frozen(weights: Optional[Mapping[str, float]]) -> Mapping[str, float]:
    return MappingProxyType(dict(weights or {}))


@dataclass(frozen=True)
class UserPreferenceProfile:
    """Per-user affinity weights over genre tags, content types and duration buckets.

    Weights are non-negative and scaled so the strongest entry is 1.0.
    They are comparable across tags of the same user, not across users.
    Tags the user never encountered are absent and weigh 0.
    """
    genre_weights: Mapping[str, float] = field(default_factory=dict)
    content_type_weights: Mapping[str, float] = field(default_factory=dict)
    duration_weights: Mapping[str, float] = field(default_factory=dict)
    premium_share: Optional[float] = None
    reference_time: Optional[datetime] = None
    matched_entries: int = 0

    def __post_init__(self):
        object.__setattr__(self, "genre_weights", _frozen(self.genre_weights))
        object.__setattr__(self, "content_type_weights", _frozen(self.content_type_weights))
        object.__setattr__(self, "duration_weights", _frozen(self.duration_weights))

    @classmethod
    def empty(cls) -> "UserPreferenceProfile":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not any(w > 0 for w in self.genre_weights.values())

    def weight(self, tag: str) -> float:
        return self.genre_weights.get(tag, 0.0)

    def content_type_weight(self, content_type: Optional[str]) -> float:
        if content_type is None:
            return 0.0
        return self.content_type_weights.get(content_type, 0.0)

    def duration_weight(self, bucket: Optional[str]) -> float:
        if bucket is None:
            return 0.0
        return self.duration_weights.get(bucket, 0.0)

    def top_genres(self, n: int = 5) -> List[str]:
        """Strongest tags first, ties broken alphabetically."""
        ranked = sorted(self.genre_weights.items(), key=lambda kv: (-kv[1], kv[0]))
        return [tag for tag, _ in ranked[:n]]

    @property
    def preferred_content_type(self) -> Optional[str]:
        if not self.content_type_weights:
            return None
        return min(self.content_type_weights.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    @property
    def preferred_duration(self) -> Optional[str]:
        """Duration bucket (short, medium or long) the user watches most."""
        if not self.duration_weights:
            return None
        return min(self.duration_weights.items(), key=lambda kv: (-kv[1], kv[0]))[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "genreWeights": dict(self.genre_weights),
            "contentTypeWeights": dict(self.content_type_weights),
            "preferredContentType": self.preferred_content_type,
            "durationWeights": dict(self.duration_weights),
            "preferredDuration": self.preferred_duration,
            "premiumShare": self.premium_share,
            "referenceTime": self.reference_time.isoformat() if self.reference_time else None,
            "matchedEntries": self.matched_entries,
            "topGenres": self.top_genres(),
        }
