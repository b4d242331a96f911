"""Derive user taste profiles from watch history and ratings."""
import math
from collections import defaultdict
from datetime import datetime, UTC
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union
import logging

from madifa_recommendation_service.ml.scoring import (
    completion_weight,
    duration_bucket,
    half_life_decay,
    item_tags,
    rating_multiplier,
)
from madifa_recommendation_service.models import (
    ContentItem,
    RatingEntry,
    UserPreferenceProfile,
    WatchHistoryEntry,
)
from madifa_recommendation_service.models.parsing import ensure_utc, parse_float, parse_int_id

logger = logging.getLogger(__name__)

Ratings = Union[Mapping[int, float], Iterable[RatingEntry], None]

_SECONDS_PER_DAY = 86400.0


def latest_entries(history: Iterable[WatchHistoryEntry]) -> List[WatchHistoryEntry]:
    """
    Collapse history to the most recent entry per content id.

    Entries without a timestamp lose to timestamped ones; on equal timestamps
    the later-supplied entry wins. Output keeps first-seen content order.
    """
    latest: Dict[int, WatchHistoryEntry] = {}
    for entry in history:
        current = latest.get(entry.content_id)
        if current is None or _is_newer_or_equal(entry, current):
            latest[entry.content_id] = entry
    return list(latest.values())


def _is_newer_or_equal(candidate: WatchHistoryEntry, current: WatchHistoryEntry) -> bool:
    if candidate.watched_at is None:
        return current.watched_at is None
    if current.watched_at is None:
        return True
    return ensure_utc(candidate.watched_at) >= ensure_utc(current.watched_at)


def ratings_by_content(ratings: Ratings) -> Dict[int, float]:
    """Normalize ratings to a content id -> rating dict; the last duplicate wins."""
    if ratings is None:
        return {}
    if isinstance(ratings, Mapping):
        pairs = list(ratings.items())
    else:
        pairs = [(entry.content_id, entry.rating) for entry in ratings]

    rating_map: Dict[int, float] = {}
    for content_id, value in pairs:
        rating = parse_float(value, default=float("nan"))
        if math.isnan(rating):
            logger.warning(f"Ignoring malformed rating {value!r} for content {content_id!r}")
            continue
        try:
            rating_map[parse_int_id(content_id)] = rating
        except ValueError:
            logger.warning(f"Ignoring rating for malformed content id {content_id!r}")
    return rating_map


def watched_content_ids(
        history: Iterable[WatchHistoryEntry],
        completed_only: bool = True
) -> Set[int]:
    """
    Content ids to hide from personalized results.

    Args:
        history: User watch history
        completed_only: Only include content whose latest watch was completed

    Returns:
        Set of content ids
    """
    return {
        entry.content_id
        for entry in latest_entries(history)
        if entry.completed or not completed_only
    }


class PreferenceExtractor:
    """Turn a user's watch history and ratings into a UserPreferenceProfile."""

    def __init__(
        self,
        half_life_days: float = 30.0,
        min_recency_factor: float = 0.05,
        rating_scale: Tuple[float, float] = (1.0, 5.0),
        include_unwatched_ratings: bool = False,
        rated_only_weight: float = 0.5
    ):
        """
        Initialize preference extractor.

        Args:
            half_life_days: Days after which a watch counts half as much
            min_recency_factor: Lower bound of the recency factor
            rating_scale: (lowest, highest) star rating
            include_unwatched_ratings: Let ratings of unwatched catalog items
                contribute to the profile
            rated_only_weight: Base weight of a rating without a watch
        """
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        if rating_scale[1] <= rating_scale[0]:
            raise ValueError("rating_scale must be (lowest, highest)")

        self.half_life_days = half_life_days
        self.min_recency_factor = min_recency_factor
        self.rating_scale = rating_scale
        self.include_unwatched_ratings = include_unwatched_ratings
        self.rated_only_weight = rated_only_weight

    def recency_factor(self, watched_at: Optional[datetime], reference_time: Optional[datetime]) -> float:
        """Decay factor of a watch relative to the reference time."""
        if watched_at is None or reference_time is None:
            return self.min_recency_factor
        age_days = (reference_time - ensure_utc(watched_at)).total_seconds() / _SECONDS_PER_DAY
        return half_life_decay(age_days, self.half_life_days, floor=self.min_recency_factor)

    def extract(
        self,
        history: Sequence[WatchHistoryEntry],
        catalog: Sequence[ContentItem],
        ratings: Ratings = None,
        now: Optional[datetime] = None
    ) -> UserPreferenceProfile:
        """
        Build a taste profile.

        Args:
            history: User watch history (duplicates allowed)
            catalog: Full catalog used to resolve content ids to tags
            ratings: content id -> rating mapping, or RatingEntry records
            now: Reference time for recency; defaults to the latest watch

        Returns:
            UserPreferenceProfile with weights scaled so the strongest is 1.0
        """
        items_by_id: Dict[int, ContentItem] = {}
        for item in catalog:
            items_by_id.setdefault(item.id, item)

        rating_map = ratings_by_content(ratings)
        entries = latest_entries(history)
        reference_time = self._reference_time(entries, now)

        genre_totals: Dict[str, float] = defaultdict(float)
        type_totals: Dict[str, float] = defaultdict(float)
        duration_totals: Dict[str, float] = defaultdict(float)
        premium_total = 0.0
        overall_total = 0.0
        matched = 0

        contributions: List[Tuple[ContentItem, float]] = []
        for entry in entries:
            item = items_by_id.get(entry.content_id)
            if item is None:
                logger.debug(f"Skipping history entry for unknown content {entry.content_id}")
                continue
            matched += 1
            weight = (
                completion_weight(entry)
                * rating_multiplier(rating_map.get(entry.content_id), self.rating_scale)
                * self.recency_factor(entry.watched_at, reference_time)
            )
            contributions.append((item, weight))

        if self.include_unwatched_ratings:
            watched = {entry.content_id for entry in entries}
            for content_id, rating in rating_map.items():
                item = items_by_id.get(content_id)
                if item is None or content_id in watched:
                    continue
                contributions.append(
                    (item, self.rated_only_weight * rating_multiplier(rating, self.rating_scale))
                )

        for item, weight in contributions:
            weight = max(0.0, weight)
            if weight == 0.0:
                continue
            for tag in item_tags(item):
                genre_totals[tag] += weight
            if item.content_type:
                type_totals[item.content_type] += weight
            bucket = duration_bucket(item.duration)
            if bucket:
                duration_totals[bucket] += weight
            if item.is_premium:
                premium_total += weight
            overall_total += weight

        profile = UserPreferenceProfile(
            genre_weights=self._scaled(genre_totals),
            content_type_weights=self._scaled(type_totals),
            duration_weights=self._scaled(duration_totals),
            premium_share=premium_total / overall_total if overall_total > 0 else None,
            reference_time=reference_time,
            matched_entries=matched,
        )

        logger.debug(
            f"Extracted profile from {matched}/{len(entries)} history entries, "
            f"{len(profile.genre_weights)} genres"
        )
        return profile

    def _reference_time(
        self,
        entries: Sequence[WatchHistoryEntry],
        now: Optional[datetime]
    ) -> Optional[datetime]:
        if now is not None:
            return ensure_utc(now)
        timestamps = [ensure_utc(e.watched_at) for e in entries if e.watched_at is not None]
        if timestamps:
            return max(timestamps)
        return None

    def _scaled(self, totals: Mapping[str, float]) -> Dict[str, float]:
        positive = {key: value for key, value in totals.items() if value > 0}
        if not positive:
            return {}
        peak = max(positive.values())
        return {key: value / peak for key, value in sorted(positive.items())}


def default_reference_time() -> datetime:
    """Wall-clock reference for callers that want recency measured from now."""
    return datetime.now(UTC)
