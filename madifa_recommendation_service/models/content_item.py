"""Catalog content item"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from madifa_recommendation_service.models.parsing import (
    collect_tags,
    parse_bool,
    parse_date,
    parse_float,
    parse_int_id,
)


@dataclass(frozen=True)
class ContentItem:
    """A catalog entry as seen by the recommendation engine.

    Genres holds every genre/category tag of the item. Popularity is never
    negative; a missing value is stored as 0.
    """
    id: int
    title: str = ""
    genres: tuple[str, ...] = field(default_factory=tuple)
    content_type: Optional[str] = None
    popularity: float = 0.0
    release_date: Optional[date] = None
    is_premium: bool = False
    duration: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentItem":
        """
        Build an item from a content API record (camelCase or snake_case keys).

        Missing or malformed optional fields fall back to neutral values.

        Raises:
            ValueError: If the record has no usable id
        """
        release_date = parse_date(data.get("releaseDate", data.get("release_date")))
        if release_date is None:
            year = parse_float(data.get("releaseYear", data.get("release_year")), default=0.0)
            if 1 <= year <= 9999 and year.is_integer():
                release_date = date(int(year), 1, 1)

        content_type = data.get("contentType", data.get("content_type"))
        duration = parse_float(data.get("duration"), default=-1.0)

        return cls(
            id=parse_int_id(data.get("id")),
            title=str(data.get("title") or ""),
            genres=collect_tags(
                data.get("genres"),
                data.get("genre"),
                data.get("category"),
                data.get("categories"),
                data.get("tags"),
            ),
            content_type=content_type if isinstance(content_type, str) and content_type else None,
            popularity=max(0.0, parse_float(data.get("popularity"))),
            release_date=release_date,
            is_premium=parse_bool(data.get("isPremium", data.get("is_premium"))),
            duration=int(duration) if duration >= 0 else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "genres": list(self.genres),
            "contentType": self.content_type,
            "popularity": self.popularity,
            "releaseDate": self.release_date.isoformat() if self.release_date else None,
            "isPremium": self.is_premium,
            "duration": self.duration,
        }
