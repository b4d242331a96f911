"""Scoring utilities shared by the preference extractor and the ranker."""
import math
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import MultiLabelBinarizer  # type: ignore

from madifa_recommendation_service.models import ContentItem, WatchHistoryEntry

# Decimal places kept when comparing scores, so float noise never splits a tie
SCORE_PRECISION = 9

# Upper bounds in seconds of the short and medium duration buckets
SHORT_DURATION_SECONDS = 900
MEDIUM_DURATION_SECONDS = 3600


def item_tags(item: ContentItem) -> Tuple[str, ...]:
    """Genre/category tags of an item, empty when missing."""
    return tuple(item.genres or ())


def safe_popularity(item: ContentItem) -> float:
    """
    Popularity of an item with neutral defaults.

    Args:
        item: Catalog item

    Returns:
        Non-negative popularity (0 for missing, non-finite or negative values)
    """
    value = item.popularity
    if value is None:
        return 0.0
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def release_ordinal(item: ContentItem) -> float:
    """Release date as a day ordinal; missing dates sort as the oldest."""
    if item.release_date is None:
        return float("-inf")
    return float(item.release_date.toordinal())


def duration_bucket(duration: Optional[float]) -> Optional[str]:
    """
    Bucket a running time into short, medium or long.

    Args:
        duration: Running time in seconds

    Returns:
        "short" under 15 minutes, "medium" under an hour, "long" otherwise,
        or None when the duration is missing or not positive
    """
    if duration is None or not duration > 0:
        return None
    if duration < SHORT_DURATION_SECONDS:
        return "short"
    if duration < MEDIUM_DURATION_SECONDS:
        return "medium"
    return "long"


def half_life_decay(age_days: float, half_life_days: float, floor: float = 0.0) -> float:
    """
    Exponential decay that halves every half_life_days.

    Args:
        age_days: Age of the signal in days (negative ages count as 0)
        half_life_days: Days after which the factor drops to 0.5
        floor: Lower bound for the returned factor

    Returns:
        Factor in [floor, 1]
    """
    factor = 0.5 ** (max(0.0, age_days) / half_life_days)
    return max(floor, factor)


def completion_weight(entry: WatchHistoryEntry) -> float:
    if entry.completed:
        return 1.0
    return min(1.0, max(0.0, entry.watch_time_percentage / 100.0))


def rating_multiplier(rating: Optional[float], scale: Tuple[float, float] = (1.0, 5.0)) -> float:
    """
    Map a star rating to a non-negative weight multiplier.

    The midpoint of the scale maps to 1.0, the lowest rating to 0.0 and the
    highest to 2.0. Unrated content keeps a multiplier of 1.0.

    Args:
        rating: Star rating, or None when the user did not rate
        scale: (lowest, highest) rating

    Returns:
        Multiplier >= 0
    """
    if rating is None:
        return 1.0
    low, high = scale
    clamped = min(high, max(low, rating))
    midpoint = (low + high) / 2.0
    return max(0.0, (clamped - low) / (midpoint - low))


def unique_by_id(items: Iterable[ContentItem]) -> List[ContentItem]:
    """Drop repeated ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def build_genre_matrix(items: Sequence[ContentItem]) -> Tuple[np.ndarray, List[str]]:
    """
    Multi-hot encode the tags of each item.

    Args:
        items: Catalog items

    Returns:
        (matrix, classes) where matrix is n_items x n_tags and classes lists
        the tag of each column in sorted order
    """
    tag_lists = [item_tags(item) for item in items]
    classes = sorted({tag for tags in tag_lists for tag in tags})
    if not classes:
        return np.zeros((len(items), 0)), []

    encoder = MultiLabelBinarizer(classes=classes)
    matrix = encoder.fit_transform(tag_lists).astype(float)
    return matrix, list(encoder.classes_)


def inverse_document_frequency(genre_matrix: np.ndarray) -> np.ndarray:
    """
    Smoothed IDF of each tag column: ln((1 + n) / (1 + df)) + 1.

    Rare tags weigh more than tags carried by most of the catalog.
    """
    n_items = genre_matrix.shape[0]
    document_frequency = genre_matrix.sum(axis=0)
    return np.log((1.0 + n_items) / (1.0 + document_frequency)) + 1.0


def normalize_by_max(values: np.ndarray) -> np.ndarray:
    """Scale values into [0, 1] by their maximum; all zeros when the max is 0."""
    if values.size == 0:
        return values.astype(float)
    peak = float(values.max())
    if peak <= 0:
        return np.zeros_like(values, dtype=float)
    return values / peak


def round_scores(scores: np.ndarray) -> np.ndarray:
    return np.round(scores, SCORE_PRECISION)


def order_by_keys(keys: Sequence[Tuple[np.ndarray, bool]]) -> np.ndarray:
    """
    Indices that sort rows by several keys.

    Args:
        keys: (values, descending) pairs, most significant first

    Returns:
        Array of row indices in ranked order
    """
    if not keys or keys[0][0].size == 0:
        return np.array([], dtype=int)
    # np.lexsort treats the last key as the primary one
    columns = [-values if descending else values for values, descending in reversed(keys)]
    return np.lexsort(columns)
