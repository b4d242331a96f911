"""Pure entry points of the recommendation engine.

Each function recomputes from its inputs on every call and keeps no state,
so callers may invoke them concurrently for different users.
"""
from datetime import datetime
from typing import Collection, List, Optional, Sequence

from madifa_recommendation_service.ml.preference_extractor import PreferenceExtractor, Ratings
from madifa_recommendation_service.ml.recommendation_ranker import AggregateSignal, RecommendationRanker
from madifa_recommendation_service.models import ContentItem, UserPreferenceProfile, WatchHistoryEntry

_extractor = PreferenceExtractor()
_ranker = RecommendationRanker()


def extract_preferences(
        history: Sequence[WatchHistoryEntry],
        catalog: Sequence[ContentItem],
        ratings: Ratings = None,
        now: Optional[datetime] = None
) -> UserPreferenceProfile:
    """Derive a taste profile from watch history and ratings."""
    return _extractor.extract(history, catalog, ratings, now=now)


def recommend(
        catalog: Sequence[ContentItem],
        profile: UserPreferenceProfile,
        exclude: Optional[Collection[int]] = None,
        limit: int = 10,
        watch_counts: AggregateSignal = None
) -> List[ContentItem]:
    """Personalized ranking, falling back to trending for unmatched slots."""
    return _ranker.recommend(catalog, profile, exclude=exclude, limit=limit, watch_counts=watch_counts)


def similar_to(item: ContentItem, catalog: Sequence[ContentItem], limit: int = 10) -> List[ContentItem]:
    """Catalog items sharing tags with item."""
    return _ranker.similar_to(item, catalog, limit=limit)


def trending(
        catalog: Sequence[ContentItem],
        aggregate_signal: AggregateSignal = None,
        limit: int = 10
) -> List[ContentItem]:
    """Popularity and recency ranking."""
    return _ranker.trending(catalog, aggregate_signal, limit=limit)
