"""Watch history and rating records"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from madifa_recommendation_service.models.parsing import (
    parse_bool,
    parse_datetime,
    parse_float,
    parse_int_id,
)


@dataclass(frozen=True)
class WatchHistoryEntry:
    """One user's latest watch of a content item."""
    content_id: int
    watched_at: Optional[datetime] = None
    watch_time_percentage: float = 0.0
    completed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchHistoryEntry":
        """
        Build an entry from a history record.

        Accepts both the client shape (watchedAt, watchTimePercentage,
        completed) and the stored shape (lastWatched, progress). When no
        completed flag is present, a full watch counts as completed.

        Raises:
            ValueError: If the record has no usable content id
        """
        percentage = parse_float(
            data.get("watchTimePercentage", data.get("watch_time_percentage", data.get("progress")))
        )
        percentage = min(100.0, max(0.0, percentage))

        completed = data.get("completed")
        watched_at = data.get("watchedAt", data.get("watched_at", data.get("lastWatched")))

        return cls(
            content_id=parse_int_id(data.get("contentId", data.get("content_id"))),
            watched_at=parse_datetime(watched_at),
            watch_time_percentage=percentage,
            completed=parse_bool(completed) if completed is not None else percentage >= 100.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentId": self.content_id,
            "watchedAt": self.watched_at.isoformat() if self.watched_at else None,
            "watchTimePercentage": self.watch_time_percentage,
            "completed": self.completed,
        }


@dataclass(frozen=True)
class RatingEntry:
    """A user's star rating of a content item."""
    content_id: int
    rating: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RatingEntry":
        """
        Raises:
            ValueError: If the record has no usable content id or rating
        """
        rating = parse_float(data.get("rating"), default=float("nan"))
        if math.isnan(rating):
            raise ValueError(f"Invalid rating: {data.get('rating')!r}")
        return cls(
            content_id=parse_int_id(data.get("contentId", data.get("content_id"))),
            rating=rating,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"contentId": self.content_id, "rating": self.rating}
