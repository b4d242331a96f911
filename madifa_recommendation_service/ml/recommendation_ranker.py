"""Rank catalog content for personalized, similar-content and trending queries."""
import math
from collections import Counter
from datetime import date, datetime
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import logging

import numpy as np

from madifa_recommendation_service.ml.scoring import (
    build_genre_matrix,
    duration_bucket,
    half_life_decay,
    inverse_document_frequency,
    item_tags,
    normalize_by_max,
    order_by_keys,
    release_ordinal,
    round_scores,
    safe_popularity,
    unique_by_id,
)
from madifa_recommendation_service.models import ContentItem, UserPreferenceProfile, WatchHistoryEntry
from madifa_recommendation_service.models.parsing import parse_int_id

logger = logging.getLogger(__name__)

AggregateSignal = Union[Mapping[int, float], Iterable[WatchHistoryEntry], None]


def validate_limit(limit: int) -> int:
    """
    Check a requested result count.

    Raises:
        ValueError: If limit is not a non-negative integer
    """
    if isinstance(limit, bool) or not isinstance(limit, (int, np.integer)):
        raise ValueError(f"limit must be an integer, got {limit!r}")
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")
    return int(limit)


def watch_counts_from_signal(signal: AggregateSignal) -> Dict[int, float]:
    """
    Turn an aggregate watch signal into content id -> count.

    Args:
        signal: None, a precomputed count mapping, or watch history entries
            from all users

    Returns:
        Dict of positive finite counts
    """
    if signal is None:
        return {}
    if isinstance(signal, Mapping):
        counts = {}
        for content_id, count in signal.items():
            try:
                key = parse_int_id(content_id)
                value = float(count)
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed watch count: {content_id!r}={count!r}")
                continue
            if math.isfinite(value) and value > 0:
                counts[key] = value
        return counts
    return dict(Counter(entry.content_id for entry in signal))


class RecommendationRanker:
    """Order catalog items for the three query modes.

    Holds only scoring constants, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        popularity_weight: float = 0.5,
        watch_count_weight: float = 0.3,
        release_recency_weight: float = 0.2,
        release_half_life_days: float = 365.0,
        content_type_weight: float = 0.0,
        duration_weight: float = 0.0
    ):
        """
        Initialize the ranker.

        Args:
            popularity_weight: Weight of normalized popularity in trending
            watch_count_weight: Weight of normalized aggregate watch counts in trending
            release_recency_weight: Weight of release recency in trending
            release_half_life_days: Days after which release recency halves
            content_type_weight: Bonus per unit of content type affinity in
                personalized scoring (0 disables it)
            duration_weight: Bonus per unit of duration bucket affinity in
                personalized scoring (0 disables it)
        """
        if release_half_life_days <= 0:
            raise ValueError("release_half_life_days must be positive")

        self.popularity_weight = popularity_weight
        self.watch_count_weight = watch_count_weight
        self.release_recency_weight = release_recency_weight
        self.release_half_life_days = release_half_life_days
        self.content_type_weight = content_type_weight
        self.duration_weight = duration_weight

    # ===== MODE A: PERSONALIZED =====

    def score_items(
        self,
        items: Sequence[ContentItem],
        profile: UserPreferenceProfile
    ) -> np.ndarray:
        """
        Affinity score of each item: the sum of its tags' profile weights.

        Args:
            items: Candidate items
            profile: User taste profile

        Returns:
            Array of scores aligned with items
        """
        genre_matrix, classes = build_genre_matrix(items)
        weights = np.array([profile.weight(tag) for tag in classes], dtype=float)
        scores = genre_matrix @ weights if classes else np.zeros(len(items))

        if self.content_type_weight:
            type_bonus = np.array([profile.content_type_weight(item.content_type) for item in items])
            scores = scores + self.content_type_weight * type_bonus

        if self.duration_weight:
            duration_bonus = np.array([
                profile.duration_weight(duration_bucket(item.duration)) for item in items
            ])
            scores = scores + self.duration_weight * duration_bonus

        return round_scores(scores)

    def recommend(
        self,
        catalog: Sequence[ContentItem],
        profile: UserPreferenceProfile,
        exclude: Optional[Collection[int]] = None,
        limit: int = 10,
        watch_counts: AggregateSignal = None
    ) -> List[ContentItem]:
        """
        Personalized recommendations with a trending fallback.

        Items matching the profile come first; remaining slots are filled in
        trending order.

        Args:
            catalog: Catalog items
            profile: User taste profile (may be empty)
            exclude: Content ids that must not be returned
            limit: Maximum number of results
            watch_counts: Aggregate signal passed to the trending fallback

        Returns:
            Ordered list of at most limit items
        """
        limit = validate_limit(limit)
        excluded = set(exclude or ())
        candidates = [item for item in unique_by_id(catalog) if item.id not in excluded]
        if limit == 0 or not candidates:
            return []

        scores = self.score_items(candidates, profile)
        order = order_by_keys([
            (scores, True),
            (self._popularity_array(candidates), True),
            (self._release_array(candidates), True),
            (self._id_array(candidates), False),
        ])
        personalized = [candidates[i] for i in order if scores[i] > 0][:limit]

        if len(personalized) < limit:
            chosen = {item.id for item in personalized}
            fill = [
                item for item in self.trending(candidates, watch_counts, len(candidates))
                if item.id not in chosen
            ][:limit - len(personalized)]
            logger.debug(f"Filled {len(fill)} of {limit} slots from trending")
            personalized.extend(fill)

        return personalized

    # ===== MODE B: SIMILAR CONTENT =====

    def similar_to(
        self,
        item: ContentItem,
        catalog: Sequence[ContentItem],
        limit: int = 10
    ) -> List[ContentItem]:
        """
        Items sharing tags with a reference item, rare tags counting more.

        Args:
            item: Reference item (need not be in the catalog)
            catalog: Catalog items
            limit: Maximum number of results

        Returns:
            Ordered list of at most limit items, never containing the reference
        """
        limit = validate_limit(limit)
        unique = unique_by_id(catalog)
        if limit == 0 or not unique:
            return []

        reference_tags = set(item_tags(item))
        if not reference_tags:
            return self._same_type_by_popularity(item, unique, limit)

        # IDF is computed over the whole catalog, before dropping the reference
        genre_matrix, classes = build_genre_matrix(unique)
        if not classes:
            return []
        idf = inverse_document_frequency(genre_matrix)
        shared = np.array([tag in reference_tags for tag in classes], dtype=float)
        scores = round_scores(genre_matrix @ (shared * idf))

        keep = np.array([other.id != item.id and score > 0 for other, score in zip(unique, scores)])
        candidates = [other for other, kept in zip(unique, keep) if kept]
        candidate_scores = scores[keep]

        order = order_by_keys([
            (candidate_scores, True),
            (self._popularity_array(candidates), True),
            (self._id_array(candidates), False),
        ])
        return [candidates[i] for i in order[:limit]]

    def _same_type_by_popularity(
        self,
        item: ContentItem,
        catalog: Sequence[ContentItem],
        limit: int
    ) -> List[ContentItem]:
        candidates = [
            other for other in catalog
            if other.id != item.id
            and (item.content_type is None or other.content_type == item.content_type)
        ]
        order = order_by_keys([
            (self._popularity_array(candidates), True),
            (self._id_array(candidates), False),
        ])
        return [candidates[i] for i in order[:limit]]

    # ===== MODE C: TRENDING =====

    def trending_scores(
        self,
        items: Sequence[ContentItem],
        aggregate_signal: AggregateSignal = None,
        now: Optional[Union[date, datetime]] = None
    ) -> np.ndarray:
        """
        Composite of popularity, aggregate watches and release recency.

        Each component is normalized to [0, 1] by its maximum over items.

        Args:
            items: Candidate items
            aggregate_signal: Watch counts across all users (optional)
            now: Reference date for release recency; defaults to the newest
                release among items

        Returns:
            Array of scores aligned with items
        """
        counts = watch_counts_from_signal(aggregate_signal)
        popularity = normalize_by_max(self._popularity_array(items))
        watches = normalize_by_max(np.array([counts.get(item.id, 0.0) for item in items], dtype=float))
        recency = self._release_recency(items, now)

        return round_scores(
            self.popularity_weight * popularity
            + self.watch_count_weight * watches
            + self.release_recency_weight * recency
        )

    def trending(
        self,
        catalog: Sequence[ContentItem],
        aggregate_signal: AggregateSignal = None,
        limit: int = 10,
        now: Optional[Union[date, datetime]] = None
    ) -> List[ContentItem]:
        """
        Popularity/recency ranking used when there is no personal signal.

        Args:
            catalog: Catalog items
            aggregate_signal: Watch counts across all users (optional)
            limit: Maximum number of results
            now: Reference date for release recency

        Returns:
            Ordered list of at most limit items
        """
        limit = validate_limit(limit)
        candidates = unique_by_id(catalog)
        if limit == 0 or not candidates:
            return []

        scores = self.trending_scores(candidates, aggregate_signal, now)
        order = order_by_keys([
            (scores, True),
            (self._id_array(candidates), False),
        ])
        return [candidates[i] for i in order[:limit]]

    def _release_recency(
        self,
        items: Sequence[ContentItem],
        now: Optional[Union[date, datetime]]
    ) -> np.ndarray:
        ordinals = self._release_array(items)
        known = np.isfinite(ordinals)
        recency = np.zeros(len(items))
        if not known.any():
            return recency

        if now is None:
            reference = float(ordinals[known].max())
        else:
            reference_date = now.date() if isinstance(now, datetime) else now
            reference = float(reference_date.toordinal())

        recency[known] = [
            half_life_decay(reference - ordinal, self.release_half_life_days)
            for ordinal in ordinals[known]
        ]
        return recency

    # ===== KEY ARRAYS =====

    def _popularity_array(self, items: Sequence[ContentItem]) -> np.ndarray:
        return np.array([safe_popularity(item) for item in items], dtype=float)

    def _release_array(self, items: Sequence[ContentItem]) -> np.ndarray:
        return np.array([release_ordinal(item) for item in items], dtype=float)

    def _id_array(self, items: Sequence[ContentItem]) -> np.ndarray:
        return np.array([item.id for item in items], dtype=np.int64)
